""" decrypt.py
"""
import logging
from typing import List
from typing import NamedTuple
from typing import Optional

from .candidates import PasswordCandidate
from .candidates import SessionKey
from .candidates import key_candidates
from .credentials import Certs
from .credentials import Keys
from .errors import BadData
from .errors import MissingArgument
from .operation import Operation
from .operation import Ready
from .unwrap import Unwrapper
from .unwrap import read_message
from .verification import Verification

__all__ = ['Decrypt',
           'Decrypted', ]

logger = logging.getLogger(__name__)


class Decrypted(NamedTuple):
    session_key: Optional[SessionKey]
    verifications: List[Verification]


class Decrypt(Operation):
    def __init__(self, context=None):
        super(Decrypt, self).__init__(context)
        self.not_before = None
        self.not_after = None
        self.certs = Certs()
        self.keys = Keys()
        self.passwords = []
        self.key_passwords = []
        self.session_keys = []

    def verify_not_before(self, when):
        return self._evolve(not_before=when)

    def verify_not_after(self, when):
        return self._evolve(not_after=when)

    def verify_with_cert(self, certs):
        return self._evolve(certs=self.certs + certs)

    def with_key(self, keys):
        return self._evolve(keys=self.keys + keys)

    def with_password(self, password):
        # consumed passwords are tried as given too, so they are not normalized here
        return self._evolve(passwords=self.passwords + [password])

    def with_key_password(self, password):
        return self._evolve(key_passwords=self.key_passwords + [password])

    def with_session_key(self, session_key):
        if not isinstance(session_key, SessionKey):
            session_key = SessionKey.parse(session_key)
        return self._evolve(session_keys=self.session_keys + [session_key])

    def validate(self):
        if not self.keys and not self.passwords and not self.session_keys:
            raise MissingArgument('needs something to decrypt with (at least an OpenPGP secret key, '
                                  'a session key, or a password)')

    def ciphertext(self, source):
        return self._bind(DecryptReady, source)


class DecryptReady(Ready):
    def _run(self, sink):
        op = self.op
        context = self.context
        now = context.now()

        message = read_message(self._read())
        candidates = [PasswordCandidate(password) for password in op.passwords]
        candidates += key_candidates(op.keys, op.key_passwords, context, now)

        unwrapper = Unwrapper(candidates, op.certs, now, op.session_keys, op.not_before, op.not_after)
        result = unwrapper.unwrap(message)
        if not result.encrypted:
            raise BadData("message is not encrypted")

        sink.write(result.plaintext)
        return Decrypted(result.session_key, result.verifications)

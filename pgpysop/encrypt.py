""" encrypt.py
"""
import logging
import warnings

from pgpy import PGPMessage
from pgpy.constants import CompressionAlgorithm
from pgpy.errors import PGPError

from .candidates import SessionKey
from .constants import ENCRYPT_PROFILES
from .constants import FALLBACK_CIPHER
from .constants import EncryptionMechanism
from .constants import LiteralMode
from .constants import SignatureMode
from .credentials import Certs
from .credentials import Keys
from .credentials import select_preferred
from .errors import CertCannotEncrypt
from .errors import KeyCannotSign
from .errors import MissingArgument
from .errors import UnsupportedOption
from .errors import UnsupportedProfile
from .operation import Operation
from .operation import Ready
from .operation import normalize_password
from .signing import check_text
from .signing import collect_signers

__all__ = ['Encrypt']

logger = logging.getLogger(__name__)


def profile_name(name):
    if name == 'default':
        return next(iter(ENCRYPT_PROFILES))
    if name not in ENCRYPT_PROFILES:
        raise UnsupportedProfile("unknown encryption profile {!r}".format(name))
    return name


class Encrypt(Operation):
    """
    Encrypt to certificates and/or passwords, optionally signing first.

    ``Encrypt().add_cert(certs).plaintext(data).to_bytes()`` returns the ciphertext and the
    :py:class:`~pgpysop.candidates.SessionKey` it was encrypted with.
    """

    def __init__(self, context=None):
        super(Encrypt, self).__init__(context)
        self.armor = True
        self.literal_mode = LiteralMode.Binary
        self.profile_name = next(iter(ENCRYPT_PROFILES))
        self.recipients = Certs()
        self.passwords = []
        self.signers = Keys()
        self.key_passwords = []

    def no_armor(self):
        return self._evolve(armor=False)

    def mode(self, mode):
        mode = LiteralMode(mode)
        return self._evolve(literal_mode=mode)

    def profile(self, name):
        return self._evolve(profile_name=profile_name(name))

    def add_cert(self, certs):
        now = self.context.now()
        for credential in certs:
            if not credential.encryption_capable_keys(now):
                raise CertCannotEncrypt("Certificate {} has no usable encryption-capable component key"
                                        "".format(credential.fingerprint))
        return self._evolve(recipients=self.recipients + certs)

    def add_password(self, password):
        return self._evolve(passwords=self.passwords + [normalize_password(password)])

    def add_signing_key(self, keys):
        now = self.context.now()
        for credential in keys:
            if credential.is_secret and not any(ck.has_secret for ck in credential.signing_capable_keys(now)):
                raise KeyCannotSign("Key {} has no usable signing-capable component key".format(credential.fingerprint))
        return self._evolve(signers=self.signers + keys)

    def add_key_password(self, password):
        return self._evolve(key_passwords=self.key_passwords + [password])

    def validate(self):
        if not self.recipients and not self.passwords:
            raise MissingArgument('needs at least one OpenPGP certificate or password to encrypt to')

    def plaintext(self, source):
        return self._bind(EncryptReady, source)


class EncryptReady(Ready):
    def _mechanism(self, now):
        op = self.op
        if op.recipients:
            return select_preferred(op.recipients, now, self.context.mechanisms, EncryptionMechanism.SEIPDv1, 'mechanism')
        return ENCRYPT_PROFILES[op.profile_name][1]

    def _run(self, sink):
        op = self.op
        context = self.context
        now = context.now()
        data = self._read()

        if op.literal_mode is LiteralMode.Text:
            check_text(data)

        components = []
        for credential in op.recipients:
            keys = credential.encryption_capable_keys(now)
            if not keys:
                raise CertCannotEncrypt("Certificate {} has no usable encryption-capable component key"
                                        "".format(credential.fingerprint))
            components.extend(keys)

        signers = collect_signers(op.signers, now, context) if op.signers else []

        cipher = select_preferred(op.recipients, now, context.ciphers, FALLBACK_CIPHER, 'cipher')
        compression = select_preferred(op.recipients, now, context.compression, CompressionAlgorithm.Uncompressed,
                                       'compression')
        mechanism = self._mechanism(now)
        if mechanism is not EncryptionMechanism.SEIPDv1:
            raise UnsupportedOption("{} encryption is not supported by this backend".format(mechanism.name))
        logger.info("encrypting with %s, %s, %s compression", cipher.name, mechanism.name, compression.name)

        msg = PGPMessage.new(data, format=op.literal_mode.format, compression=compression)

        sigmode = SignatureMode.Text if op.literal_mode is LiteralMode.Text else SignatureMode.Binary
        for signer in signers:
            msg |= signer.sign(data, sigmode, now, op.key_passwords, context)

        session_key = SessionKey(cipher, bytes(cipher.gen_key()))
        try:
            with warnings.catch_warnings():
                # the chosen algorithms may be missing from a recipient's preferences on purpose
                warnings.simplefilter('ignore')
                for component in components:
                    msg = component.key.encrypt(msg, cipher=cipher, sessionkey=session_key.key)
                for password in op.passwords:
                    msg = msg.encrypt(password, sessionkey=session_key.key, cipher=cipher)
        except (PGPError, ValueError, NotImplementedError) as e:
            raise CertCannotEncrypt("could not encrypt: {}".format(e))

        if op.armor:
            sink.write(str(msg).encode('ascii'))
        else:
            sink.write(bytes(msg))
        return session_key

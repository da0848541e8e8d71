""" sign.py
"""
import logging

from pgpy import PGPMessage
from pgpy.constants import CompressionAlgorithm

from .constants import InlineSignMode
from .constants import SignatureMode
from .credentials import Keys
from .credentials import Sigs
from .errors import IncompatibleOptions
from .errors import KeyCannotSign
from .errors import MissingArgument
from .operation import Operation
from .operation import Ready
from .signing import check_text
from .signing import collect_signers
from .signing import micalg

__all__ = ['Sign',
           'InlineSign', ]

logger = logging.getLogger(__name__)


class _SigningOperation(Operation):
    def __init__(self, context=None):
        super(_SigningOperation, self).__init__(context)
        self.armor = True
        self.signers = Keys()
        self.key_passwords = []

    def add_signing_key(self, keys):
        now = self.context.now()
        for credential in keys:
            if credential.is_secret and not any(ck.has_secret for ck in credential.signing_capable_keys(now)):
                raise KeyCannotSign("Key {} has no usable signing-capable component key".format(credential.fingerprint))
        return self._evolve(signers=self.signers + keys)

    def with_key_password(self, password):
        return self._evolve(key_passwords=self.key_passwords + [password])

    def validate(self):
        if not self.signers:
            raise MissingArgument("Need at least one OpenPGP Secret Key file as an argument")

    def _signatures(self, data, mode):
        now = self.context.now()
        signers = collect_signers(self.signers, now, self.context)
        return [signer.sign(data, mode, now, self.key_passwords, self.context) for signer in signers]


class Sign(_SigningOperation):
    """Detached signatures. Running it returns the ``micalg`` of what was made."""

    def __init__(self, context=None):
        super(Sign, self).__init__(context)
        self.sig_mode = SignatureMode.Binary

    def no_armor(self):
        return self._evolve(armor=False)

    def mode(self, mode):
        return self._evolve(sig_mode=SignatureMode(mode))

    def data(self, source):
        return self._bind(SignReady, source)


class SignReady(Ready):
    def _run(self, sink):
        op = self.op
        data = self._read()
        if op.sig_mode is SignatureMode.Text:
            check_text(data)
        signatures = op._signatures(data, op.sig_mode)
        Sigs(signatures).save(sink, armor=op.armor)
        return micalg(signatures)


class InlineSign(_SigningOperation):
    def __init__(self, context=None):
        super(InlineSign, self).__init__(context)
        self.sig_mode = InlineSignMode.Binary

    def no_armor(self):
        if self.sig_mode is InlineSignMode.ClearSigned:
            raise IncompatibleOptions("clearsigned output is always armored")
        return self._evolve(armor=False)

    def mode(self, mode):
        mode = InlineSignMode(mode)
        if mode is InlineSignMode.ClearSigned and not self.armor:
            raise IncompatibleOptions("clearsigned output is always armored")
        return self._evolve(sig_mode=mode)

    def data(self, source):
        return self._bind(InlineSignReady, source)


class InlineSignReady(Ready):
    def _run(self, sink):
        op = self.op
        data = self._read()

        if op.sig_mode is InlineSignMode.Binary:
            msg = PGPMessage.new(data, format='b', compression=CompressionAlgorithm.Uncompressed)
            signatures = op._signatures(data, SignatureMode.Binary)
        else:
            text = check_text(data)
            if op.sig_mode is InlineSignMode.ClearSigned:
                msg = PGPMessage.new(text, cleartext=True)
            else:
                msg = PGPMessage.new(text, format='u', compression=CompressionAlgorithm.Uncompressed)
            signatures = op._signatures(data, SignatureMode.Text)

        for sig in signatures:
            msg |= sig

        if op.armor or op.sig_mode is InlineSignMode.ClearSigned:
            sink.write(str(msg).encode('utf-8'))
        else:
            sink.write(bytes(msg))
        return micalg(signatures)

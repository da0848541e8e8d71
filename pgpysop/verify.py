""" verify.py
"""
import logging

from .credentials import Certs
from .credentials import Sigs
from .errors import BadData
from .errors import MissingArgument
from .errors import NoSignature
from .operation import Operation
from .operation import Ready
from .unwrap import Unwrapper
from .unwrap import read_message
from .verification import check_signatures

__all__ = ['Verify',
           'InlineVerify',
           'InlineDetach', ]

logger = logging.getLogger(__name__)


class _VerifyingOperation(Operation):
    def __init__(self, context=None):
        super(_VerifyingOperation, self).__init__(context)
        self.window_start = None
        self.window_end = None
        self.certs = Certs()

    def not_before(self, when):
        return self._evolve(window_start=when)

    def not_after(self, when):
        return self._evolve(window_end=when)

    def add_cert(self, certs):
        return self._evolve(certs=self.certs + certs)

    def validate(self):
        if not self.certs:
            raise MissingArgument('needs at least one OpenPGP certificate')


class Verify(_VerifyingOperation):
    """Check detached signatures over data. Running it returns the verifications."""

    def __init__(self, context=None):
        super(Verify, self).__init__(context)
        self.sigs = Sigs()

    def signatures(self, sigs):
        return self._evolve(sigs=self.sigs + sigs)

    def validate(self):
        super(Verify, self).validate()
        if not self.sigs:
            raise MissingArgument('needs at least one OpenPGP signature')

    def data(self, source):
        return self._bind(VerifyReady, source)


class VerifyReady(Ready):
    def _run(self, sink):
        op = self.op
        data = self._read()
        verifications = check_signatures(op.sigs, data, op.certs, self.context.now(), op.window_start, op.window_end)
        if not verifications:
            raise NoSignature("No good signature found")
        return verifications


class InlineVerify(_VerifyingOperation):
    """Check an inline-signed or cleartext signed message, writing out what was signed."""

    def message(self, source):
        return self._bind(InlineVerifyReady, source)


class InlineVerifyReady(Ready):
    def _run(self, sink):
        op = self.op
        message = read_message(self._read())
        unwrapper = Unwrapper(certs=op.certs, now=self.context.now(), not_before=op.window_start, not_after=op.window_end)
        result = unwrapper.unwrap(message, decrypt=False)
        if not result.verifications:
            raise NoSignature("No good signature found")
        if sink is not None:
            sink.write(result.plaintext)
        return result.verifications


class InlineDetach(Operation):
    """Split an inline-signed message into its plaintext and detached signatures."""

    def message(self, source):
        return self._bind(InlineDetachReady, source)


class InlineDetachReady(Ready):
    def _run(self, sink):
        message = read_message(self._read())
        result = Unwrapper().unwrap(message, decrypt=False)
        if not result.signatures:
            raise BadData("message carries no signatures")
        sink.write(result.plaintext)
        return Sigs(result.signatures)

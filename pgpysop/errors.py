""" errors.py
"""
import sop

__all__ = ('PGPySOPError',
           'MissingArgument',
           'UnsupportedOption',
           'UnsupportedProfile',
           'IncompatibleOptions',
           'BadData',
           'NoSignature',
           'CertCannotEncrypt',
           'KeyCannotSign',
           'KeyIsProtected',
           'CouldNotDecrypt',
           'PasswordNotHumanReadable',
           'NotUTF8Text',
           'HardwareKeyFailure',
           'AuthenticationFailed',
           'NoPinConfigured',
           'Unimplemented',
           'OperationConsumed', )


class PGPySOPError(sop.SOPException):
    """Raised as a general error in pgpysop. ``exit_code`` is the Stateless OpenPGP exit status."""
    pass


class MissingArgument(PGPySOPError, sop.SOPMissingRequiredArgument):
    """Raised when a required credential, password or input was never supplied"""
    pass


class UnsupportedOption(PGPySOPError, sop.SOPUnsupportedOption):
    """Raised when an option is recognized but not supported"""
    pass


class UnsupportedProfile(PGPySOPError, sop.SOPUnsupportedProfile):
    """Raised when a profile or algorithm name is unknown"""
    pass


class IncompatibleOptions(PGPySOPError, sop.SOPIncompatibleOptions):
    """Raised when two configured options cannot be combined"""
    pass


class BadData(PGPySOPError, sop.SOPInvalidDataType):
    """Raised when input is malformed, unparseable, or nested too deeply"""
    pass


class NoSignature(PGPySOPError, sop.SOPNoSignature):
    """Raised when verification ran but no signature validated"""
    pass


class CertCannotEncrypt(PGPySOPError, sop.SOPCertificateNotEncryptionCapable):
    """Raised when a certificate has no valid encryption-capable component key"""
    pass


class KeyCannotSign(PGPySOPError, sop.SOPKeyCannotSign):
    """Raised when a key has no usable signing-capable component key"""
    pass


class KeyIsProtected(PGPySOPError, sop.SOPKeyIsProtected):
    """Raised when no supplied password unlocks a protected key"""
    pass


class CouldNotDecrypt(PGPySOPError, sop.SOPCouldNotDecrypt):
    """Raised when no candidate recovered the session key of a message"""
    pass


class PasswordNotHumanReadable(PGPySOPError, sop.SOPPasswordNotHumanReadable):
    """Raised when a password is not valid UTF-8"""
    pass


class NotUTF8Text(PGPySOPError, sop.SOPNotUTF8Text):
    """Raised when text mode was requested for data that is not UTF-8"""
    pass


class HardwareKeyFailure(PGPySOPError):
    """Raised when a hardware token could not complete a private key operation"""
    exit_code = 101
    mnemonic = 'HARDWARE_KEY_FAILURE'


class AuthenticationFailed(HardwareKeyFailure):
    """Raised when a hardware token rejects the PIN presented to it"""
    pass


class NoPinConfigured(HardwareKeyFailure):
    """Raised when no PIN is stored for a hardware token"""
    pass


class Unimplemented(PGPySOPError, sop.SOPUnsupportedSubcommand):
    """Raised for an operation this implementation explicitly does not support"""
    pass


class OperationConsumed(PGPySOPError, RuntimeError):
    """Raised when a builder or executor is used after its terminal call"""
    pass

""" constants.py
"""
from collections import OrderedDict
from enum import Enum
from enum import IntEnum

from pgpy.constants import CompressionAlgorithm
from pgpy.constants import EllipticCurveOID
from pgpy.constants import HashAlgorithm
from pgpy.constants import PubKeyAlgorithm
from pgpy.constants import SymmetricKeyAlgorithm

__all__ = ['MAX_DEPTH',
           'PacketTag',
           'ArmorLabel',
           'SignatureMode',
           'InlineSignMode',
           'LiteralMode',
           'EncryptionMechanism',
           'DEFAULT_HASHES',
           'DEFAULT_CIPHERS',
           'DEFAULT_COMPRESSION',
           'DEFAULT_MECHANISMS',
           'FALLBACK_HASH',
           'FALLBACK_CIPHER',
           'ENCRYPT_PROFILES',
           'GENERATE_PROFILES',
           'DIGEST_INFO_PREFIXES', ]

#: deepest nesting of message layers the unwrap engine will follow
MAX_DEPTH = 10


class PacketTag(IntEnum):
    """OpenPGP packet tags, as encoded in the first octet of a packet header."""
    PKESessionKey = 1
    Signature = 2
    SKESessionKey = 3
    OnePassSignature = 4
    SecretKey = 5
    PublicKey = 6
    SecretSubKey = 7
    CompressedData = 8
    SymmetricallyEncryptedData = 9
    Marker = 10
    LiteralData = 11
    Trust = 12
    UserID = 13
    PublicSubKey = 14
    UserAttribute = 17
    SymIntegrityProtectedData = 18
    ModificationDetectionCode = 19

    @classmethod
    def from_header_octet(cls, octet):
        """
        Decode the tag from the first octet of a packet header.

        Bit 6 selects between the current format (6-bit tag) and the legacy format
        (4-bit tag followed by a 2-bit length type).
        """
        if octet & 0x40:
            return cls(octet & 0x3F)
        return cls((octet >> 2) & 0x0F)


class ArmorLabel(Enum):
    Auto = 'auto'
    Message = 'message'
    Key = 'key'
    Cert = 'cert'
    Sig = 'sig'

    @property
    def magic(self):
        """The word that follows ``BEGIN PGP`` in an armor header line."""
        return {ArmorLabel.Message: 'MESSAGE',
                ArmorLabel.Key: 'PRIVATE KEY BLOCK',
                ArmorLabel.Cert: 'PUBLIC KEY BLOCK',
                ArmorLabel.Sig: 'SIGNATURE'}[self]


class SignatureMode(Enum):
    """Whether a document signature covers raw octets or canonical text."""
    Binary = 'binary'
    Text = 'text'


class InlineSignMode(Enum):
    Binary = 'binary'
    Text = 'text'
    ClearSigned = 'clearsigned'


class LiteralMode(Enum):
    Binary = 'binary'
    Text = 'text'
    MIME = 'mime'

    @property
    def format(self):
        """The literal data packet format octet."""
        return {LiteralMode.Binary: 'b',
                LiteralMode.Text: 'u',
                LiteralMode.MIME: 'm'}[self]


class EncryptionMechanism(IntEnum):
    """Symmetrically encrypted, integrity protected data packet versions."""
    SEIPDv1 = 1
    SEIPDv2 = 2

    @property
    def feature(self):
        """The bit advertising this mechanism in a Features subpacket."""
        return {EncryptionMechanism.SEIPDv1: 0x01,
                EncryptionMechanism.SEIPDv2: 0x08}[self]


# default policy, in order of preference
DEFAULT_HASHES = (HashAlgorithm.SHA512,
                  HashAlgorithm.SHA384,
                  HashAlgorithm.SHA256,
                  HashAlgorithm.SHA224)

DEFAULT_CIPHERS = (SymmetricKeyAlgorithm.AES256,
                   SymmetricKeyAlgorithm.AES192,
                   SymmetricKeyAlgorithm.AES128,
                   SymmetricKeyAlgorithm.Camellia256,
                   SymmetricKeyAlgorithm.Camellia192,
                   SymmetricKeyAlgorithm.Camellia128,
                   SymmetricKeyAlgorithm.CAST5,
                   SymmetricKeyAlgorithm.TripleDES,
                   SymmetricKeyAlgorithm.Blowfish)

DEFAULT_COMPRESSION = (CompressionAlgorithm.Uncompressed, )

# PGPy only writes version 1 integrity protected data
DEFAULT_MECHANISMS = (EncryptionMechanism.SEIPDv1, )

FALLBACK_HASH = HashAlgorithm.SHA256
# AES128 is MTI in RFC4880
FALLBACK_CIPHER = SymmetricKeyAlgorithm.AES128

# name -> (description, encryption mechanism used for password-only messages)
ENCRYPT_PROFILES = OrderedDict([
    ('rfc4880', ("use algorithms from RFC 4880", EncryptionMechanism.SEIPDv1)),
])

# name -> (description, (primary algorithm, primary parameter), (subkey algorithm, subkey parameter))
GENERATE_PROFILES = OrderedDict([
    ('draft-koch-eddsa-for-openpgp-00', ("use EdDSA & ECDH over Cv25519",
                                         (PubKeyAlgorithm.EdDSA, EllipticCurveOID.Ed25519),
                                         (PubKeyAlgorithm.ECDH, EllipticCurveOID.Curve25519))),
    ('rfc4880', ("use algorithms from RFC 4880",
                 (PubKeyAlgorithm.RSAEncryptOrSign, 4096),
                 (PubKeyAlgorithm.RSAEncryptOrSign, 4096))),
    ('rfc6637-nistp256', ("use ECDSA & ECDH over NIST P-256",
                          (PubKeyAlgorithm.ECDSA, EllipticCurveOID.NIST_P256),
                          (PubKeyAlgorithm.ECDH, EllipticCurveOID.NIST_P256))),
    ('rfc6637-nistp384', ("use ECDSA & ECDH over NIST P-384",
                          (PubKeyAlgorithm.ECDSA, EllipticCurveOID.NIST_P384),
                          (PubKeyAlgorithm.ECDH, EllipticCurveOID.NIST_P384))),
    ('rfc6637-nistp521', ("use ECDSA & ECDH over NIST P-521",
                          (PubKeyAlgorithm.ECDSA, EllipticCurveOID.NIST_P521),
                          (PubKeyAlgorithm.ECDH, EllipticCurveOID.NIST_P521))),
])

# ASN.1 DigestInfo prefixes for RSA PKCS#1 v1.5 signatures made on a card (RFC 4880 section 5.2.2)
DIGEST_INFO_PREFIXES = {
    HashAlgorithm.SHA224: bytes.fromhex('302d300d06096086480165030402040500041c'),
    HashAlgorithm.SHA256: bytes.fromhex('3031300d060960864801650304020105000420'),
    HashAlgorithm.SHA384: bytes.fromhex('3041300d060960864801650304020205000430'),
    HashAlgorithm.SHA512: bytes.fromhex('3051300d060960864801650304020305000440'),
}

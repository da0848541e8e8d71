""" hardware.py

Private key operations for component keys whose secret half lives on a hardware token.

The token driver is reached only through :py:class:`Token` and :py:class:`TokenTransaction`.
Everything that turns raw token output back into OpenPGP objects happens here, on top of PGPy.
"""
import abc
import logging
from enum import IntEnum

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature
from cryptography.hazmat.primitives.keywrap import InvalidUnwrap
from cryptography.hazmat.primitives.keywrap import aes_key_unwrap
from cryptography.hazmat.primitives.padding import PKCS7

from pgpy import PGPSignature
from pgpy.constants import EllipticCurveOID
from pgpy.constants import PubKeyAlgorithm
from pgpy.constants import SignatureType
from pgpy.constants import SymmetricKeyAlgorithm

from .constants import DIGEST_INFO_PREFIXES
from .constants import SignatureMode
from .errors import CouldNotDecrypt
from .errors import HardwareKeyFailure
from .errors import KeyCannotSign
from .pin import PinSession
from .pin import confirm_touch

__all__ = ['Slot',
           'Token',
           'TokenTransaction',
           'HardwareKey',
           'find_hardware_key',
           'session_key_from_block', ]

logger = logging.getLogger(__name__)


class Slot(IntEnum):
    Signature = 1
    Decryption = 2
    Authentication = 3


class TokenTransaction(abc.ABC):
    """Exclusive access to one token, valid only inside :py:meth:`Token.transaction`."""

    @abc.abstractmethod
    def fingerprint(self, slot):
        """The OpenPGP v4 fingerprint of the key in ``slot``, as 20 bytes, or ``None``."""

    @abc.abstractmethod
    def requires_touch(self, slot):
        """``True`` if using the key in ``slot`` waits for a physical touch."""

    @abc.abstractmethod
    def verify_pin(self, pin, slot):
        """Present the User PIN. Raises :py:exc:`~pgpysop.pin.PinRejected` if the token refuses it."""

    @abc.abstractmethod
    def sign(self, data):
        """Compute a digital signature over ``data`` with the signature key."""

    @abc.abstractmethod
    def decipher(self, cryptogram):
        """Decipher ``cryptogram`` (RSA) or compute the shared secret for an ECDH point."""


class Token(abc.ABC):
    @property
    @abc.abstractmethod
    def ident(self):
        """Stable identity of the token, used as the PIN store key."""

    @abc.abstractmethod
    def transaction(self):
        """Context manager yielding a :py:class:`TokenTransaction`; released on every exit path."""


def find_hardware_key(component, tokens, slot):
    """
    Look for a token holding the secret half of ``component`` in ``slot``.

    :param component: the component key (a :py:class:`pgpy.PGPKey`, primary or subkey)
    :param tokens: iterable of :py:class:`Token`
    :returns: :py:class:`HardwareKey` or ``None``
    """
    want = bytes.fromhex(str(component.fingerprint).replace(' ', ''))
    for token in tokens:
        with token.transaction() as tx:
            fpr = tx.fingerprint(slot)
        if fpr is not None and bytes(fpr) == want:
            logger.info("found %s key %s on card %s", slot.name.lower(), component.fingerprint, token.ident)
            return HardwareKey(component, token)
    return None


def session_key_from_block(m):
    """
    Split a decrypted session key block: one algorithm octet, the key, then a two-octet checksum
    equal to the sum of the key octets modulo 65536.

    :returns: ``(SymmetricKeyAlgorithm, bytes)``
    """
    m = bytearray(m)
    try:
        symalg = SymmetricKeyAlgorithm(m[0])
    except (IndexError, ValueError):
        raise CouldNotDecrypt("malformed session key block")

    keylen = symalg.key_size // 8
    symkey = bytes(m[1:1 + keylen])
    checksum = int.from_bytes(m[1 + keylen:3 + keylen], 'big')
    if len(symkey) != keylen or sum(symkey) % 65536 != checksum:
        raise CouldNotDecrypt("session key checksum mismatch")
    return symalg, symkey


class HardwareKey(object):
    """A component key paired with the token that holds its secret material."""

    def __init__(self, component, token):
        self.component = component
        self.token = token

    @property
    def fingerprint(self):
        return self.component.fingerprint

    def sign(self, subject, mode, hash_alg, created, pin_store, touch_prompt=None):
        """
        Make a document signature over ``subject`` with the token.

        The signature packet is assembled with PGPy exactly as :py:meth:`pgpy.PGPKey.sign` does,
        only the final private key operation is sent to the token.
        """
        component = self.component
        sigtype = SignatureType.CanonicalDocument if mode is SignatureMode.Text else SignatureType.BinaryDocument
        sig = PGPSignature.new(sigtype, component.key_algorithm, hash_alg, component.fingerprint.keyid, created=created)
        sig._signature.subpackets.addnew('IssuerFingerprint', hashed=True, _version=4, _issuer_fpr=component.fingerprint)

        sigdata = sig.hashdata(subject)
        h = hashes.Hash(getattr(hashes, hash_alg.name)())
        h.update(bytes(sigdata))
        digest = h.finalize()
        sig._signature.hash2 = bytearray(digest[:2])

        alg = component.key_algorithm
        if alg in {PubKeyAlgorithm.RSAEncryptOrSign, PubKeyAlgorithm.RSASign}:
            if hash_alg not in DIGEST_INFO_PREFIXES:
                raise KeyCannotSign("card RSA signatures need one of {}".format(
                    ', '.join(h.name for h in DIGEST_INFO_PREFIXES)))
            payload = DIGEST_INFO_PREFIXES[hash_alg] + digest
        elif alg in {PubKeyAlgorithm.ECDSA, PubKeyAlgorithm.EdDSA}:
            payload = digest
        else:
            raise KeyCannotSign("card signing with {} is not supported".format(alg.name))

        session = PinSession(pin_store, self.token.ident)
        session.check()
        with self.token.transaction() as tx:
            session.present(tx, Slot.Signature)
            confirm_touch(tx, Slot.Signature, touch_prompt)
            raw = bytes(tx.sign(payload))

        if alg == PubKeyAlgorithm.ECDSA:
            half = len(raw) // 2
            raw = encode_dss_signature(int.from_bytes(raw[:half], 'big'), int.from_bytes(raw[half:], 'big'))

        sig._signature.signature.from_signer(raw)
        sig._signature.update_hlen()
        return sig

    def session_key(self, pkesk, pin_store, touch_prompt=None):
        """
        Recover the session key from a public key encrypted session key packet.

        :returns: ``(SymmetricKeyAlgorithm, bytes)``
        """
        component = self.component
        km = component._key.keymaterial

        if pkesk.pkalg in {PubKeyAlgorithm.RSAEncryptOrSign, PubKeyAlgorithm.RSAEncrypt}:
            ct = pkesk.ct.me_mod_n.to_mpibytes()[2:]
            ct = b'\x00' * ((km.n.bit_length() + 7) // 8 - len(ct)) + ct
            # padding indicator byte precedes the RSA cryptogram
            cryptogram = b'\x00' + bytes(ct)
        elif pkesk.pkalg == PubKeyAlgorithm.ECDH:
            point = bytes(pkesk.ct.p.to_mpibytes()[2:])
            if km.oid == EllipticCurveOID.Curve25519:
                # the card wants the bare 32 octet X25519 key, without the 0x40 prefix
                point = point[1:]
            cryptogram = _tlv(0xA6, _tlv(0x7F49, _tlv(0x86, point)))
        else:
            raise HardwareKeyFailure("card decryption with {} is not supported".format(pkesk.pkalg.name))

        session = PinSession(pin_store, self.token.ident)
        session.check()
        with self.token.transaction() as tx:
            session.present(tx, Slot.Decryption)
            confirm_touch(tx, Slot.Decryption, touch_prompt)
            result = bytes(tx.decipher(cryptogram))

        if pkesk.pkalg == PubKeyAlgorithm.ECDH:
            z = km.kdf.derive_key(result, km.oid, PubKeyAlgorithm.ECDH, component.fingerprint)
            try:
                _m = aes_key_unwrap(z, bytes(pkesk.ct.c))
                padder = PKCS7(64).unpadder()
                result = padder.update(_m) + padder.finalize()
            except (InvalidUnwrap, ValueError) as e:
                raise CouldNotDecrypt("card shared secret does not unwrap the session key") from e

        return session_key_from_block(result)


def _tlv(tag, value):
    tagbytes = tag.to_bytes(2 if tag > 0xFF else 1, 'big')
    n = len(value)
    if n < 0x80:
        length = bytes([n])
    elif n <= 0xFF:
        length = bytes([0x81, n])
    else:
        length = bytes([0x82]) + n.to_bytes(2, 'big')
    return tagbytes + length + value

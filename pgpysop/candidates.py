""" candidates.py

Everything that might recover the session key of an encrypted message, and the cascade that tries
them in order.
"""
import abc
import binascii
import logging
from typing import NamedTuple
from typing import Optional

from pgpy.constants import SymmetricKeyAlgorithm
from pgpy.errors import PGPDecryptionError
from pgpy.errors import PGPError
from pgpy.packet.packets import PKESessionKey
from pgpy.packet.packets import SKESessionKey

from .errors import BadData
from .errors import CouldNotDecrypt
from .errors import HardwareKeyFailure
from .errors import KeyIsProtected
from .hardware import Slot
from .hardware import find_hardware_key
from .operation import password_variants

__all__ = ['SessionKey',
           'DecryptionCandidate',
           'PasswordCandidate',
           'SoftwareKeyCandidate',
           'HardwareKeyCandidate',
           'key_candidates',
           'recover_session_key', ]

logger = logging.getLogger(__name__)

# PGPDecryptionError is not a PGPError
_ENGINE_FAILURES = (PGPError, PGPDecryptionError, ValueError, TypeError, IndexError, NotImplementedError)


class SessionKey(NamedTuple):
    """A symmetric algorithm and key. Prints as ``ALGID:HEXKEY``."""
    algorithm: SymmetricKeyAlgorithm
    key: bytes

    def __str__(self):
        return "{:d}:{}".format(int(self.algorithm), binascii.hexlify(self.key).decode('ascii').upper())

    @classmethod
    def parse(cls, text):
        if isinstance(text, (bytes, bytearray)):
            text = bytes(text).decode('ascii', 'replace')
        algid, sep, hexkey = text.strip().partition(':')
        if not sep:
            raise BadData("session key must look like ALGID:HEXKEY")
        try:
            algorithm = SymmetricKeyAlgorithm(int(algid))
            key = binascii.unhexlify(hexkey)
        except (ValueError, binascii.Error) as e:
            raise BadData("malformed session key: {}".format(e))
        if len(key) * 8 != algorithm.key_size:
            raise BadData("{} session key must be {} octets, got {}".format(algorithm.name, algorithm.key_size // 8, len(key)))
        return cls(algorithm, key)


def _decrypt_payload(payload, session_key):
    try:
        return payload.decrypt(session_key.key, session_key.algorithm)
    except _ENGINE_FAILURES as e:
        logger.debug("payload did not decrypt with a %s session key: %s", session_key.algorithm.name, e)
        return None


class DecryptionCandidate(abc.ABC):
    """One way of recovering a session key from a session key packet."""

    @abc.abstractmethod
    def accepts(self, esk):
        """Whether trying this candidate on ``esk`` makes sense at all."""

    @abc.abstractmethod
    def attempt(self, esk) -> Optional[SessionKey]:
        """The session key, or ``None`` if this candidate does not open ``esk``."""


class PasswordCandidate(DecryptionCandidate):
    def __init__(self, password, source=None):
        self.password = password
        self.source = source

    def __repr__(self):
        return "<PasswordCandidate from {}>".format(self.source or '<input>')

    def accepts(self, esk):
        return isinstance(esk, SKESessionKey)

    def attempt(self, esk):
        for variant in password_variants(self.password):
            try:
                symalg, key = esk.decrypt_sk(variant)
                return SessionKey(SymmetricKeyAlgorithm(symalg), bytes(key))
            except _ENGINE_FAILURES as e:
                logger.debug("%r did not open SKESK: %s", self, e)
        return None


class SoftwareKeyCandidate(DecryptionCandidate):
    """A component key with secret material in software, unlocked with the supplied key passwords."""

    def __init__(self, component, passwords=()):
        self.component = component
        self.passwords = list(passwords)

    def __repr__(self):
        return "<SoftwareKeyCandidate {}>".format(self.component.fingerprint)

    def accepts(self, esk):
        if not isinstance(esk, PKESessionKey):
            return False
        # an all-zero key ID hides the recipient, every key has to try
        return esk.encrypter in (self.component.keyid, '0000000000000000')

    def _open(self, esk):
        try:
            symalg, key = esk.decrypt_sk(self.component.key._key)
        except _ENGINE_FAILURES as e:
            logger.debug("%r did not open PKESK: %s", self, e)
            return None
        return SessionKey(SymmetricKeyAlgorithm(symalg), bytes(key))

    def attempt(self, esk):
        credential = self.component.credential
        if not credential.is_protected:
            return self._open(esk)

        for password in self.passwords:
            for variant in password_variants(password):
                try:
                    with credential.key.unlock(variant):
                        return self._open(esk)
                except PGPDecryptionError:
                    continue
        raise KeyIsProtected("Key {} could not be unlocked by any of the {} passwords provided"
                             "".format(credential.fingerprint, len(self.passwords)))


class HardwareKeyCandidate(DecryptionCandidate):
    """A component key whose secret half lives on a token."""

    def __init__(self, hardware_key, pin_store, touch_prompt=None):
        self.hardware_key = hardware_key
        self.pin_store = pin_store
        self.touch_prompt = touch_prompt

    def __repr__(self):
        return "<HardwareKeyCandidate {} on {}>".format(self.hardware_key.fingerprint, self.hardware_key.token.ident)

    def accepts(self, esk):
        if not isinstance(esk, PKESessionKey):
            return False
        return esk.encrypter in (self.hardware_key.fingerprint.keyid, '0000000000000000')

    def attempt(self, esk):
        try:
            symalg, key = self.hardware_key.session_key(esk, self.pin_store, self.touch_prompt)
        except CouldNotDecrypt as e:
            logger.warning("%r: %s", self, e)
            return None
        return SessionKey(symalg, key)


def key_candidates(keys, passwords, context, now):
    """
    Decryption candidates for every encryption-capable component key in ``keys``.

    Component keys with secret material in software become :py:class:`SoftwareKeyCandidate`;
    the rest are looked up on the tokens ``context`` provides, if ``keys`` allows it.
    """
    candidates = []
    tokens = None
    for credential in keys:
        for component in credential.encryption_capable_keys(now):
            if component.has_secret:
                candidates.append(SoftwareKeyCandidate(component, passwords))
                continue
            if not getattr(keys, 'allow_hardware', False):
                continue
            if tokens is None:
                tokens = list(context.tokens())
            hardware_key = find_hardware_key(component.key, tokens, Slot.Decryption)
            if hardware_key is None:
                logger.warning("no token holds the secret part of %s", component.fingerprint)
                continue
            candidates.append(HardwareKeyCandidate(hardware_key, context.pin_store, context.touch_prompt))
    return candidates


def recover_session_key(esks, payload, candidates, session_keys=()):
    """
    Find the session key that decrypts ``payload``.

    Supplied ``session_keys`` are tried first, then every candidate against every session key packet
    it accepts, in the order given. The first session key that decrypts the payload wins.

    :returns: ``(SessionKey, plaintext)``
    :raises: :py:exc:`~pgpysop.errors.CouldNotDecrypt` if nothing worked, or the first
             :py:exc:`~pgpysop.errors.KeyIsProtected` / hardware failure met along the way.
    """
    for session_key in session_keys:
        plaintext = _decrypt_payload(payload, session_key)
        if plaintext is not None:
            logger.debug("payload decrypted with a supplied session key")
            return session_key, plaintext
        logger.warning("supplied %s session key did not decrypt the message", session_key.algorithm.name)

    pending = None
    for candidate in candidates:
        for esk in esks:
            if not candidate.accepts(esk):
                continue
            try:
                session_key = candidate.attempt(esk)
            except (KeyIsProtected, HardwareKeyFailure) as e:
                logger.warning("could not decrypt with %r: %s", candidate, e)
                if pending is None:
                    pending = e
                break
            if session_key is None:
                logger.warning("could not decrypt with %r", candidate)
                continue
            plaintext = _decrypt_payload(payload, session_key)
            if plaintext is not None:
                logger.debug("payload decrypted with %r", candidate)
                return session_key, plaintext

    if pending is not None:
        raise pending
    raise CouldNotDecrypt("could not find anything capable of decryption")

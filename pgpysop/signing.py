""" signing.py

Making document signatures with software keys and token-backed keys alike.
"""
import logging
import warnings
from typing import NamedTuple
from typing import Optional

from pgpy import PGPMessage
from pgpy.errors import PGPDecryptionError
from pgpy.errors import PGPError

from .constants import FALLBACK_HASH
from .constants import SignatureMode
from .credentials import ComponentKey
from .errors import KeyCannotSign
from .errors import KeyIsProtected
from .errors import NotUTF8Text
from .hardware import HardwareKey
from .hardware import Slot
from .hardware import find_hardware_key
from .operation import password_variants

__all__ = ['Signer',
           'collect_signers',
           'check_text',
           'micalg', ]

logger = logging.getLogger(__name__)


def check_text(data):
    """``data`` as text, or :py:exc:`~pgpysop.errors.NotUTF8Text`."""
    try:
        return bytes(data).decode('utf-8')
    except UnicodeDecodeError:
        raise NotUTF8Text('Message was not encoded UTF-8 text')


def micalg(signatures):
    """The ``pgp-<hash>`` name shared by every signature, or ``''`` if they disagree."""
    halgs = set(sig.hash_algorithm for sig in signatures)
    if len(halgs) != 1:
        return ''
    return 'pgp-{}'.format(halgs.pop().name.lower())


class Signer(NamedTuple):
    """A signing-capable component key and, if its secret lives on a token, that token."""
    component: ComponentKey
    hash_algorithm: object
    hardware_key: Optional[HardwareKey] = None

    @property
    def fingerprint(self):
        return self.component.fingerprint

    def sign(self, data, mode, created, passwords=(), context=None):
        """
        Sign ``data`` (bytes) in ``mode`` at ``created``.

        :raises: :py:exc:`~pgpysop.errors.KeyIsProtected` if no password in ``passwords`` unlocks the key
        """
        if self.hardware_key is not None:
            return self.hardware_key.sign(data, mode, self.hash_algorithm, created,
                                          context.pin_store, context.touch_prompt)

        if mode is SignatureMode.Text:
            subject = PGPMessage.new(check_text(data), cleartext=True)
        else:
            subject = bytes(data)

        credential = self.component.credential
        if not credential.is_protected:
            return self._sign(subject, created)

        for password in passwords:
            for variant in password_variants(password):
                try:
                    with credential.key.unlock(variant):
                        return self._sign(subject, created)
                except PGPDecryptionError:
                    continue
        n = len(passwords)
        if n == 0:
            err = "; no passwords provided"
        elif n == 1:
            err = "by the provided password"
        else:
            err = "by any of the {} passwords provided".format(n)
        raise KeyIsProtected("Key {} could not be unlocked {}.".format(credential.fingerprint, err))

    def _sign(self, subject, created):
        try:
            with warnings.catch_warnings():
                warnings.simplefilter('ignore')
                return self.component.key.sign(subject, hash=self.hash_algorithm, created=created)
        except (PGPError, NotImplementedError) as e:
            raise KeyCannotSign("{} could not sign: {}".format(self.fingerprint, e))


def collect_signers(keys, now, context):
    """
    A :py:class:`Signer` for every signing-capable component key in ``keys``, in order.

    Each key signs with the first of ``context.hashes`` it prefers.

    :raises: :py:exc:`~pgpysop.errors.KeyCannotSign` if a key has no usable signing-capable component key
    """
    signers = []
    tokens = None
    for credential in keys:
        hash_algorithm = next(iter(credential.preferred('hash', now, context.hashes)), FALLBACK_HASH)
        found = False
        for component in credential.signing_capable_keys(now):
            if component.has_secret:
                signers.append(Signer(component, hash_algorithm))
                found = True
                continue
            if not getattr(keys, 'allow_hardware', False):
                continue
            if tokens is None:
                tokens = list(context.tokens())
            hardware_key = find_hardware_key(component.key, tokens, Slot.Signature)
            if hardware_key is None:
                logger.warning("no token holds the secret part of %s", component.fingerprint)
                continue
            signers.append(Signer(component, hash_algorithm, hardware_key))
            found = True
        if not found:
            raise KeyCannotSign("Key {} has no usable signing-capable component key".format(credential.fingerprint))
        logger.info("signing with %s using %s", credential.fingerprint, hash_algorithm.name)
    return signers

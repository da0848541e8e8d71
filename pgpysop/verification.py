""" verification.py

Checking document signatures against caller-supplied certificates.
"""
import logging
from datetime import datetime
from typing import List
from typing import NamedTuple

from pgpy.constants import SignatureType

from .constants import SignatureMode
from .credentials import aware

__all__ = ['Verification',
           'signature_mode',
           'check_signature',
           'check_signatures', ]

logger = logging.getLogger(__name__)

DOCUMENT_SIGNATURES = frozenset({SignatureType.BinaryDocument, SignatureType.CanonicalDocument})


class Verification(NamedTuple):
    """A signature that validated, and who made it."""
    created: datetime
    key_fingerprint: object
    cert_fingerprint: object
    mode: SignatureMode

    def __str__(self):
        return "{} {} {} mode:{}".format(self.created.strftime('%Y-%m-%dT%H:%M:%SZ'),
                                         str(self.key_fingerprint).replace(' ', ''),
                                         str(self.cert_fingerprint).replace(' ', ''),
                                         self.mode.value)


def signature_mode(sig):
    return SignatureMode.Text if sig.type == SignatureType.CanonicalDocument else SignatureMode.Binary


def check_signature(sig, subject, certs, now, not_before=None, not_after=None) -> List[Verification]:
    """
    Every :py:class:`Verification` ``sig`` earns over ``subject``.

    The issuing component key must be signing-capable and valid at the signature's own creation
    time, and must belong to one of ``certs``; nothing else is consulted.
    """
    if sig.type not in DOCUMENT_SIGNATURES:
        logger.debug("ignoring %s signature, not a document signature", sig.type.name)
        return []

    created = aware(sig.created)
    if created > now:
        logger.warning("signature by %s was made in the future (%s)", sig.signer, created)
        return []
    if not_before is not None and created < not_before:
        logger.info("signature by %s made %s, before the verification window", sig.signer, created)
        return []
    if not_after is not None and created > not_after:
        logger.info("signature by %s made %s, after the verification window", sig.signer, created)
        return []
    expires = sig.expires_at
    if expires is not None and aware(expires) <= now:
        logger.info("signature by %s expired at %s", sig.signer, expires)
        return []

    verifications = []
    for cert in certs:
        for component in cert.signing_capable_keys(created):
            if not component.issued(sig):
                continue
            if component.verify(sig, subject):
                verifications.append(Verification(created, component.fingerprint, cert.fingerprint, signature_mode(sig)))
            else:
                logger.warning("bad signature by %s", component.fingerprint)
    return verifications


def check_signatures(sigs, subject, certs, now, not_before=None, not_after=None):
    verifications = []
    for sig in sigs:
        verifications.extend(check_signature(sig, subject, certs, now, not_before, not_after))
    return verifications

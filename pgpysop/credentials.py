""" credentials.py

Certificates, keys, and detached signatures, loaded from byte streams.

Component keys and algorithm preferences are always derived for a reference time and never
cached, so the same certificate can answer differently for a signature made last year and a
message encrypted today.
"""
import logging
import re
import warnings
from datetime import datetime
from datetime import timezone
from typing import Iterable
from typing import List
from typing import NamedTuple
from typing import Optional

from cryptography.hazmat.primitives import hashes

from pgpy import PGPKey
from pgpy import PGPSignature
from pgpy.constants import KeyFlags
from pgpy.errors import PGPError
from pgpy.packet import Packet
from pgpy.packet.packets import Signature

from .armor import Armored
from .armor import unarmor
from .constants import ArmorLabel
from .constants import EncryptionMechanism
from .errors import BadData
from .errors import Unimplemented

__all__ = ['preferred',
           'select_preferred',
           'ComponentKey',
           'Credential',
           'Certs',
           'Keys',
           'Sigs',
           'aware', ]

logger = logging.getLogger(__name__)

_armor_block = re.compile(r'-----BEGIN PGP (?P<magic>[A-Z0-9 ,]+)-----.*?-----END PGP (?P=magic)-----', flags=re.S)

ENCRYPTION_FLAGS = frozenset({KeyFlags.EncryptCommunications, KeyFlags.EncryptStorage})


def aware(dt):
    # some versions of pgpy return tz-naive objects, even though all timestamps are in UTC
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def preferred(declared, defaults):
    """
    Filter ``defaults`` down to the entries a peer declared, keeping the order of ``defaults``.

    A peer that declares nothing leaves ``defaults`` unchanged.
    """
    defaults = tuple(defaults)
    if not declared:
        return defaults
    declared = set(declared)
    return tuple(d for d in defaults if d in declared)


def select_preferred(credentials, now, defaults, fallback, kind):
    """
    Pick one algorithm (or mechanism) acceptable to every credential.

    The result is the first entry of ``defaults`` that survives every credential's ``kind``
    preferences at ``now``, or ``fallback`` if nothing survives. The order of ``credentials``
    does not matter.
    """
    order = tuple(defaults)
    for credential in credentials:
        order = credential.preferred(kind, now, order)
    if order:
        return order[0]
    logger.info("no mutually preferred %s among %d certificates, falling back to %s", kind, len(credentials), fallback.name)
    return fallback


class ComponentKey(NamedTuple):
    """One primary key or subkey of a credential, as seen at a reference time."""
    key: PGPKey
    credential: 'Credential'
    flags: frozenset
    created: datetime
    expires: Optional[datetime]

    @property
    def fingerprint(self):
        return self.key.fingerprint

    @property
    def keyid(self):
        return self.key.fingerprint.keyid

    @property
    def is_primary(self):
        return self.key.is_primary

    @property
    def can_sign(self):
        return KeyFlags.Sign in self.flags

    @property
    def can_encrypt(self):
        return bool(ENCRYPTION_FLAGS & self.flags)

    @property
    def has_secret(self):
        return not self.key.is_public

    def issued(self, sig):
        """Whether ``sig`` claims to have been made by this component key."""
        fpr = sig.signer_fingerprint
        if fpr:
            return fpr == self.key.fingerprint
        return sig.signer == self.keyid

    def verify(self, sig, subject):
        """Cryptographically check ``sig`` over ``subject``; validity checks are up to the caller."""
        sigdata = sig.hashdata(subject)
        try:
            verified = self.key._key.verify(bytes(sigdata), sig.__sig__, getattr(hashes, sig.hash_algorithm.name)())
        except (PGPError, ValueError, TypeError, AttributeError, NotImplementedError) as e:
            logger.debug("signature by %s could not be checked: %s", self.fingerprint, e)
            return False
        return verified is True


class Credential(object):
    """
    A certificate, or a certificate with secret key material, with an optional provenance label.
    """

    def __init__(self, key, source=None):
        self.key = key
        self.source = source

    def __repr__(self):
        return "<{} {} from {}>".format(self.__class__.__name__, self.fingerprint, self.source or '<input>')

    @property
    def fingerprint(self):
        return self.key.fingerprint

    @property
    def is_secret(self):
        return not self.key.is_public

    @property
    def is_protected(self):
        return self.key.is_protected

    @property
    def cert(self):
        """The public half."""
        return self.key if self.key.is_public else self.key.pubkey

    def _binding_signature(self, now):
        """Newest self-signature on the primary key valid at ``now``: primary user ID first, then any user ID,
        then a direct key signature."""
        candidates = []
        for uid in self.key.userids:
            sig = uid.selfsig
            if sig is not None and aware(sig.created) <= now:
                candidates.append((uid.is_primary, aware(sig.created), sig))
        if candidates:
            return max(candidates, key=lambda c: (c[0], c[1]))[2]

        direct = [sig for sig in self.key.self_signatures if aware(sig.created) <= now]
        if direct:
            return max(direct, key=lambda s: aware(s.created))
        return None

    @staticmethod
    def _revoked(key, now):
        return any(aware(sig.created) <= now for sig in key.revocation_signatures)

    def component_keys(self, now):
        """Every component key alive at ``now``, primary first, then subkeys in certificate order."""
        primary = self.key
        binding = self._binding_signature(now)
        if binding is None or aware(primary.created) > now or self._revoked(primary, now):
            return []

        components = []
        expires = None
        if binding.key_expiration is not None:
            expires = aware(primary.created) + binding.key_expiration
        if expires is not None and expires <= now:
            return []
        components.append(ComponentKey(primary, self, frozenset({KeyFlags.Certify} | set(binding.key_flags)),
                                       aware(primary.created), expires))

        for subkey in primary.subkeys.values():
            if aware(subkey.created) > now or self._revoked(subkey, now):
                continue
            bindings = [sig for sig in subkey.self_signatures if aware(sig.created) <= now]
            if not bindings:
                continue
            sig = max(bindings, key=lambda s: aware(s.created))
            sub_expires = None
            if sig.key_expiration is not None:
                sub_expires = aware(subkey.created) + sig.key_expiration
            if sub_expires is not None and sub_expires <= now:
                continue
            components.append(ComponentKey(subkey, self, frozenset(sig.key_flags), aware(subkey.created), sub_expires))

        return components

    def signing_capable_keys(self, now):
        return [ck for ck in self.component_keys(now) if ck.can_sign]

    def encryption_capable_keys(self, now):
        return [ck for ck in self.component_keys(now) if ck.can_encrypt]

    def declared(self, kind, now):
        """The preferences this credential declares at ``now`` for ``kind``, or an empty list."""
        sig = self._binding_signature(now)
        if sig is None:
            return []
        if kind == 'hash':
            return list(sig.hashprefs)
        if kind == 'cipher':
            return list(sig.cipherprefs)
        if kind == 'compression':
            return list(sig.compprefs)
        if kind == 'mechanism':
            bits = 0
            for flag in sig.features:
                bits |= int(flag)
            return [m for m in EncryptionMechanism if bits & m.feature]
        raise ValueError("unknown preference kind {!r}".format(kind))

    def preferred(self, kind, now, defaults):
        return preferred(self.declared(kind, now), defaults)


class _Collection(object):
    """An ordered, load-once collection of OpenPGP artifacts."""
    label = None

    def __init__(self, items=(), source=None):
        self.items = list(items)
        self.source = source

    def __iter__(self):
        return iter(self.items)

    def __len__(self):
        return len(self.items)

    def __bool__(self):
        return bool(self.items)

    def __add__(self, other):
        return self.__class__(self.items + list(other.items), self.source or other.source)

    @staticmethod
    def _blocks(data):
        """Split ``data`` into its ASCII-armored blocks, or return it whole if it is binary."""
        data = bytes(data)
        if not data:
            raise BadData("no OpenPGP data found")
        if data[0] & 0x80:
            return [data]
        text = data.decode('latin-1')
        blocks = [m.group(0).encode('latin-1') for m in _armor_block.finditer(text)]
        if not blocks:
            raise BadData("expected ASCII-armored OpenPGP data")
        return blocks

    @classmethod
    def load(cls, stream, source=None):
        """Load from a binary stream or a bytes object, armored or not."""
        data = stream if isinstance(stream, (bytes, bytearray)) else stream.read()
        if source is None:
            source = getattr(stream, 'name', None)
        return cls(cls._parse(data, source), source)

    @classmethod
    def _parse(cls, data, source):
        raise NotImplementedError

    def __bytes__(self):
        return b''.join(bytes(item.key if isinstance(item, Credential) else item) for item in self.items)

    def save(self, sink, armor=True):
        data = bytes(self)
        if armor:
            data = str(Armored(data, self.label)).encode('ascii')
        sink.write(data)


class _KeyCollection(_Collection):
    @classmethod
    def _parse(cls, data, source):
        loaded = []
        for block in cls._blocks(data):
            try:
                with warnings.catch_warnings():
                    warnings.simplefilter('ignore')
                    key, others = PGPKey.from_blob(block)
            except (PGPError, ValueError, TypeError, IndexError, NotImplementedError) as e:
                raise BadData("could not parse OpenPGP key material from {}: {}".format(source or 'input', e))
            loaded.append(key)
            loaded.extend(k for k in others.values() if k is not key)
        for key in loaded:
            cls._check(key, source)
        return [Credential(key, source) for key in loaded]

    @classmethod
    def _check(cls, key, source):
        pass


class Certs(_KeyCollection):
    """Public certificates."""
    label = ArmorLabel.Cert

    @classmethod
    def _check(cls, key, source):
        if not key.is_public:
            raise BadData("{} is not an OpenPGP certificate (maybe secret key?)".format(source or 'input'))


class Keys(_KeyCollection):
    """
    Transferable secret keys. With hardware support, a certificate whose secret key material lives
    on a token may also stand in as a key.
    """
    label = ArmorLabel.Key

    def __init__(self, items=(), source=None, allow_hardware=False):
        super(Keys, self).__init__(items, source)
        self.allow_hardware = allow_hardware

    @classmethod
    def load(cls, stream, source=None, allow_hardware=False):
        keys = super(Keys, cls).load(stream, source)
        if not allow_hardware:
            for credential in keys:
                if not credential.is_secret:
                    raise BadData("{} is not an OpenPGP transferable secret key (maybe certificate?)"
                                  "".format(credential.source or 'input'))
        keys.allow_hardware = allow_hardware
        return keys

    def __add__(self, other):
        return Keys(self.items + list(other.items), self.source or other.source,
                    self.allow_hardware or getattr(other, 'allow_hardware', False))

    def save(self, sink, armor=True):
        if any(not credential.is_secret for credential in self.items):
            raise Unimplemented("saving hardware-backed keys is not supported")
        super(Keys, self).save(sink, armor)

    def certs(self):
        return Certs([Credential(credential.cert, credential.source) for credential in self.items], self.source)


class Sigs(_Collection):
    """Detached signatures."""
    label = ArmorLabel.Sig

    @classmethod
    def _parse(cls, data, source):
        sigs = []
        for block in cls._blocks(data):
            body = bytearray(unarmor(block))
            while body:
                try:
                    pkt = Packet(body)
                except (PGPError, ValueError, TypeError, IndexError, NotImplementedError) as e:
                    raise BadData("could not parse signatures from {}: {}".format(source or 'input', e))
                if not isinstance(pkt, Signature):
                    raise BadData("expected only signature packets in {}, found {}"
                                  "".format(source or 'input', pkt.__class__.__name__))
                sigs.append(PGPSignature() | pkt)
        return sigs

    def __bytes__(self):
        return b''.join(bytes(sig) for sig in self.items)

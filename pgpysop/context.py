""" context.py
"""
from datetime import datetime
from datetime import timezone
from typing import Callable
from typing import Iterable
from typing import NamedTuple
from typing import Optional
from typing import Tuple

from pgpy.constants import CompressionAlgorithm
from pgpy.constants import HashAlgorithm
from pgpy.constants import SymmetricKeyAlgorithm

from . import config
from .constants import DEFAULT_CIPHERS
from .constants import DEFAULT_COMPRESSION
from .constants import DEFAULT_HASHES
from .constants import DEFAULT_MECHANISMS
from .constants import EncryptionMechanism
from .pin import PinStore

__all__ = ['Context']


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _no_tokens() -> Iterable:
    return ()


class Context(NamedTuple):
    """
    Everything an operation may consult besides its own configuration.

    Policy lists are tuples, in order of preference. ``tokens`` is called whenever a key without
    secret material in software needs a hardware token; ``touch_prompt`` is called once before a
    token operation that waits for a physical touch. ``hardware`` lets keys loaded by the frontend
    stand for component keys that only exist on a token.
    """
    hashes: Tuple[HashAlgorithm, ...] = DEFAULT_HASHES
    ciphers: Tuple[SymmetricKeyAlgorithm, ...] = DEFAULT_CIPHERS
    compression: Tuple[CompressionAlgorithm, ...] = DEFAULT_COMPRESSION
    mechanisms: Tuple[EncryptionMechanism, ...] = DEFAULT_MECHANISMS
    clock: Callable[[], datetime] = _utcnow
    pin_store: Optional[PinStore] = None
    tokens: Callable[[], Iterable] = _no_tokens
    touch_prompt: Optional[Callable[[], None]] = None
    hardware: bool = False

    def now(self) -> datetime:
        """The current time, truncated to whole seconds as OpenPGP timestamps are."""
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.replace(microsecond=0)

    @classmethod
    def default(cls, touch_prompt: Optional[Callable[[], None]] = None) -> 'Context':
        tokens = _no_tokens
        if config.cards_enabled():
            from .card import list_tokens
            tokens = list_tokens
        return cls(pin_store=PinStore(config.get_pin_store_path()), tokens=tokens, touch_prompt=touch_prompt,
                   hardware=tokens is not _no_tokens)

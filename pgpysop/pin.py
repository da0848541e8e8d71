""" pin.py

User PIN handling for hardware tokens.

A PIN is presented to a token at most once per private key operation. If the token rejects it,
the PIN is removed from the store straight away, so that a stale PIN can never burn through the
token's retry counter one invocation at a time.
"""
import contextlib
import errno
import fcntl
import json
import logging
import os
from enum import Enum

from .errors import AuthenticationFailed
from .errors import MissingArgument
from .errors import NoPinConfigured

__all__ = ['PinRejected',
           'PinStore',
           'PinState',
           'PinSession',
           'confirm_touch', ]

logger = logging.getLogger(__name__)


class PinRejected(Exception):
    """Raised by a token transaction when the token refuses a PIN"""

    def __init__(self, retries=None):
        super(PinRejected, self).__init__("PIN rejected ({} tries remaining)".format(retries)
                                          if retries is not None else "PIN rejected")
        self.retries = retries


class PinStore(object):
    """
    Token identity -> PIN association, kept in a JSON document on disk.

    Every mutation takes an exclusive ``flock`` on a sidecar lock file and replaces the document
    atomically, so concurrent drops and updates from separate processes never interleave.
    """

    def __init__(self, path):
        self.path = path

    @property
    def _lockpath(self):
        return self.path + '.lock'

    def _read(self):
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except OSError as e:
            if e.errno == errno.ENOENT:
                return {}
            raise
        if not isinstance(data, dict):
            raise ValueError("PIN store {} is not a JSON object".format(self.path))
        return data

    def _write(self, data):
        tmp = self.path + '.tmp'
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, 'w') as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(tmp, self.path)

    @contextlib.contextmanager
    def _locked(self):
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, mode=0o700, exist_ok=True)
        with open(self._lockpath, 'a') as lock:
            fcntl.flock(lock, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock, fcntl.LOCK_UN)

    def get(self, ident):
        """The PIN stored for ``ident``, or ``None``."""
        return self._read().get(ident)

    def set(self, ident, pin):
        with self._locked():
            data = self._read()
            data[ident] = pin
            self._write(data)

    def drop(self, ident):
        """Forget the PIN of ``ident``. Returns ``True`` if one was stored."""
        with self._locked():
            data = self._read()
            if ident not in data:
                return False
            del data[ident]
            self._write(data)
            return True


class PinState(Enum):
    NoPin = 'no-pin'
    Presenting = 'presenting'
    Verified = 'verified'
    Dropped = 'dropped'


class PinSession(object):
    """
    One PIN presentation to one token.

    ``present`` looks the PIN up, hands it to the token exactly once, and drops it from the store
    if the token refuses it. The PIN is not kept on the session.
    """

    def __init__(self, store, ident):
        self.store = store
        self.ident = ident
        self.state = PinState.NoPin

    def _lookup(self):
        pin = self.store.get(self.ident) if self.store is not None else None
        if pin is None:
            raise NoPinConfigured("No User PIN configured for card {}".format(self.ident))
        return pin

    def check(self):
        """Raise :py:exc:`~pgpysop.errors.NoPinConfigured` unless a PIN is stored for the token."""
        self._lookup()

    def present(self, tx, slot):
        pin = self._lookup()

        self.state = PinState.Presenting
        try:
            tx.verify_pin(pin, slot)

        except PinRejected as e:
            self.state = PinState.Dropped
            logger.error("card %s rejected the stored User PIN; removing it from %s",
                         self.ident, self.store.path)
            self.store.drop(self.ident)
            raise AuthenticationFailed("User PIN verification failed for card {}: {}".format(self.ident, e)) from e

        finally:
            del pin

        self.state = PinState.Verified
        logger.debug("User PIN verified for card %s", self.ident)


def confirm_touch(tx, slot, prompt):
    """Call ``prompt`` once if the token wants a touch before using the key in ``slot``."""
    if not tx.requires_touch(slot):
        return

    if prompt is None:
        raise MissingArgument("card requires touch confirmation, but no touch prompt is configured")

    prompt()

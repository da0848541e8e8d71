""" operation.py

Every command is a two-state value. While *configuring*, each option call returns a new
operation with that option applied, or raises straight away if the option cannot be honored.
The terminal call checks the options against each other, moves the operation to *bound* and
returns a :py:class:`Ready` executor tied to the input. The executor does all I/O and all
cryptographic work, exactly once.
"""
import contextlib
import copy
import io
import logging
from enum import Enum

from pgpy.errors import PGPError

from .context import Context
from .errors import BadData
from .errors import OperationConsumed
from .errors import PasswordNotHumanReadable

__all__ = ['State',
           'Operation',
           'Ready',
           'bad_data',
           'normalize_password',
           'password_variants', ]

logger = logging.getLogger(__name__)


class State(Enum):
    Configuring = 'configuring'
    Bound = 'bound'
    Done = 'done'


@contextlib.contextmanager
def bad_data(what):
    """Translate engine parse failures inside the block into :py:exc:`~pgpysop.errors.BadData`."""
    try:
        yield
    except (PGPError, ValueError, IndexError, NotImplementedError) as e:
        raise BadData("malformed {}: {}".format(what, e)) from e


def normalize_password(password, what='Password'):
    """Passwords are human-readable: UTF-8 with surrounding whitespace removed."""
    if isinstance(password, str):
        return password.strip()
    try:
        return bytes(password).decode('utf-8').strip()
    except UnicodeDecodeError:
        raise PasswordNotHumanReadable('{} was not UTF-8'.format(what))


def password_variants(password):
    """
    The forms of a password worth trying when consuming it: the trimmed form first, as it is more
    likely to match the user's intent, then the form exactly as given.
    """
    if isinstance(password, str):
        password = password.encode('utf-8')
    password = bytes(password)
    variants = []
    try:
        trimmed = password.decode('utf-8').strip()
    except UnicodeDecodeError:
        trimmed = None
    if trimmed is not None:
        variants.append(trimmed)
        if trimmed.encode('utf-8') != password:
            variants.append(password.decode('utf-8'))
    else:
        variants.append(password)
    return variants


class Operation(object):
    def __init__(self, context=None):
        self.context = context if context is not None else Context()
        self._state = State.Configuring

    @property
    def state(self):
        return self._state

    def _check_configuring(self):
        if self._state is not State.Configuring:
            raise OperationConsumed("{} was already consumed by its terminal call".format(self.__class__.__name__))

    def _evolve(self, **changes):
        """A copy of this operation with ``changes`` applied."""
        self._check_configuring()
        new = copy.copy(self)
        for attr, value in changes.items():
            setattr(new, attr, value)
        return new

    def validate(self):
        """Cross-option checks, run by the terminal call before any input is read."""

    def _bind(self, ready, *args):
        self._check_configuring()
        self.validate()
        self._state = State.Bound
        return ready(self, *args)


class Ready(object):
    """Executor bound to an input; ``run`` drives it once."""

    def __init__(self, op, source=None):
        self.op = op
        self.source = source
        self._state = State.Bound

    @property
    def context(self):
        return self.op.context

    @property
    def state(self):
        return self._state

    def _read(self):
        if self.source is None:
            return b''
        if isinstance(self.source, (bytes, bytearray)):
            return bytes(self.source)
        return self.source.read()

    def run(self, sink=None):
        """
        Perform the operation, writing output (if any) to ``sink``.

        Output already written to ``sink`` when an error is raised is not rolled back.
        """
        if self._state is not State.Bound:
            raise OperationConsumed("{} has already run".format(self.__class__.__name__))
        self._state = State.Done
        return self._run(sink)

    to_writer = run

    def to_bytes(self):
        """Run into memory. Returns ``(output, result)``."""
        sink = io.BytesIO()
        result = self.run(sink)
        return sink.getvalue(), result

    def _run(self, sink):
        raise NotImplementedError

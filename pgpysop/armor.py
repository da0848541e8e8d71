""" armor.py

ASCII armor in and out, and guessing what a binary stream holds from its first octet.
"""
import collections
import logging

from pgpy.errors import PGPError
from pgpy.types import Armorable

from .constants import ArmorLabel
from .constants import PacketTag
from .errors import BadData
from .operation import Operation
from .operation import Ready

__all__ = ['Armored',
           'is_binary',
           'sniff',
           'unarmor',
           'Armor',
           'Dearmor', ]

logger = logging.getLogger(__name__)

_LABELS = {
    PacketTag.SecretKey: ArmorLabel.Key,
    PacketTag.PublicKey: ArmorLabel.Cert,
    PacketTag.PKESessionKey: ArmorLabel.Message,
    PacketTag.SKESessionKey: ArmorLabel.Message,
    PacketTag.OnePassSignature: ArmorLabel.Message,
    # a leading signature may also start an old style signed message, but one octet cannot tell
    PacketTag.Signature: ArmorLabel.Sig,
}


def is_binary(octet):
    """OpenPGP packet headers always have the high bit set; armored or other text never does."""
    return bool(octet & 0x80)


def sniff(octet):
    """
    Label binary OpenPGP data by its first octet.

    :raises: :py:exc:`~pgpysop.errors.BadData` if ``octet`` is not a packet header, or the packet
             does not start anything that can be armored.
    """
    if not is_binary(octet):
        raise BadData("input is not binary OpenPGP data (leading octet {:#04x})".format(octet))
    try:
        tag = PacketTag.from_header_octet(octet)
    except ValueError:
        raise BadData("unknown packet tag in leading octet {:#04x}".format(octet))
    try:
        return _LABELS[tag]
    except KeyError:
        raise BadData("cannot armor data starting with a {} packet".format(tag.name))


def unarmor(data):
    """
    The binary payload of ``data``: unchanged if already binary, otherwise the body of its first
    armored block.
    """
    data = bytes(data)
    if not data or is_binary(data[0]):
        return data
    try:
        unarmored = Armorable.ascii_unarmor(data)
    except (PGPError, ValueError, TypeError) as e:
        raise BadData("could not decode ASCII armor: {}".format(e))
    if unarmored.get('magic') is None or unarmored.get('body') is None:
        raise BadData("expected ASCII-armored OpenPGP data")
    return bytes(unarmored['body'])


class Armored(Armorable):
    """Arbitrary OpenPGP octets under a chosen armor label."""

    def __init__(self, data=b'', label=ArmorLabel.Message):
        super(Armored, self).__init__()
        self.ascii_headers = collections.OrderedDict()
        self.label = label
        self._bytes = bytes(data)

    @property
    def magic(self):
        return self.label.magic

    def parse(self, packet):
        self._bytes = bytes(packet)

    def __bytes__(self):
        return self._bytes


class Armor(Operation):
    def __init__(self, context=None):
        super(Armor, self).__init__(context)
        self.armor_label = ArmorLabel.Auto

    def label(self, label):
        return self._evolve(armor_label=ArmorLabel(label))

    def data(self, source):
        return self._bind(ArmorReady, source)


class ArmorReady(Ready):
    def _run(self, sink):
        data = self._read()
        if not data:
            return None

        if not is_binary(data[0]):
            # already armored, or not OpenPGP at all: pass it through
            logger.debug("input is not binary, passing it through unchanged")
            sink.write(data)
            return None

        label = self.op.armor_label
        if label is ArmorLabel.Auto:
            label = sniff(data[0])
        logger.debug("armoring %d octets as %s", len(data), label.magic)
        sink.write(str(Armored(data, label)).encode('ascii'))
        return None


class Dearmor(Operation):
    def data(self, source):
        return self._bind(DearmorReady, source)


class DearmorReady(Ready):
    def _run(self, sink):
        data = self._read()
        if not data:
            return None
        sink.write(unarmor(data))
        return None

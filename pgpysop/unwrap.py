""" unwrap.py

Peeling an OpenPGP message one layer at a time.

A message is compressed, signed, encrypted, or literal data. Each pass of :py:meth:`Unwrapper.unwrap`
classifies the remaining packets as one layer, records what that layer contributes (a signature to
check later, or the session key that opened it) and continues with what is inside. The loop stops at
the literal data, or fails once it is asked to look deeper than :py:data:`~pgpysop.constants.MAX_DEPTH`
layers.
"""
import logging
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Union

from pgpy import PGPMessage
from pgpy import PGPSignature
from pgpy.packet import Packet
from pgpy.packet.packets import CompressedData
from pgpy.packet.packets import IntegrityProtectedSKEData
from pgpy.packet.packets import LiteralData
from pgpy.packet.packets import MDC
from pgpy.packet.packets import Marker
from pgpy.packet.packets import OnePassSignature
from pgpy.packet.packets import PKESessionKey
from pgpy.packet.packets import SKEData
from pgpy.packet.packets import SKESessionKey
from pgpy.packet.packets import Signature

from .armor import is_binary
from .armor import unarmor
from .candidates import SessionKey
from .candidates import recover_session_key
from .constants import MAX_DEPTH
from .errors import BadData
from .operation import bad_data
from .verification import Verification
from .verification import check_signatures

__all__ = ['Literal',
           'Compressed',
           'Signed',
           'Encrypted',
           'Cleartext',
           'UnwrapResult',
           'classify',
           'parse_packets',
           'read_message',
           'Unwrapper', ]

logger = logging.getLogger(__name__)

_SESSION_KEY_PACKETS = (PKESessionKey, SKESessionKey)
_PAYLOAD_PACKETS = (SKEData, IntegrityProtectedSKEData)


class Literal(NamedTuple):
    packet: LiteralData

    @property
    def data(self):
        return bytes(self.packet._contents)


class Compressed(NamedTuple):
    packets: list


class Signed(NamedTuple):
    signatures: List[PGPSignature]
    packets: list


class Encrypted(NamedTuple):
    esks: list
    payload: Union[SKEData, IntegrityProtectedSKEData]


class Cleartext(NamedTuple):
    """A cleartext signed message, already split by the decoder."""
    message: PGPMessage

    @property
    def text(self):
        return self.message.message

    @property
    def signatures(self):
        return self.message.signatures


class UnwrapResult(NamedTuple):
    plaintext: bytes
    session_key: Optional[SessionKey]
    verifications: List[Verification]
    signatures: List[PGPSignature]
    encrypted: bool


def parse_packets(data):
    """Every packet in ``data``. Marker packets, and the MDC trailing decrypted data, are dropped."""
    data = bytearray(data)
    packets = []
    with bad_data('OpenPGP packet stream'):
        while data:
            packets.append(Packet(data))
    return [pkt for pkt in packets if not isinstance(pkt, (Marker, MDC))]


def read_message(data):
    """
    Parse a message from armored or binary ``data``.

    :returns: a list of packets, or :py:class:`Cleartext` for a cleartext signed message
    """
    data = bytes(data)
    if not data:
        raise BadData("no OpenPGP message found")
    if not is_binary(data[0]) and data.lstrip().startswith(b'-----BEGIN PGP SIGNED MESSAGE-----'):
        with bad_data('cleartext signed message'):
            return Cleartext(PGPMessage.from_blob(data))
    return parse_packets(unarmor(data))


def classify(packets):
    """
    The outermost layer of ``packets``.

    :raises: :py:exc:`~pgpysop.errors.BadData` if the packets do not form a message
    """
    if not packets:
        raise BadData("empty message")
    first = packets[0]

    if isinstance(first, LiteralData):
        if len(packets) != 1:
            raise BadData("unexpected packets after literal data")
        return Literal(first)

    if isinstance(first, CompressedData):
        if len(packets) != 1:
            raise BadData("unexpected packets after compressed data")
        return Compressed(list(first.packets))

    if isinstance(first, _SESSION_KEY_PACKETS + _PAYLOAD_PACKETS):
        esks = []
        rest = list(packets)
        while rest and isinstance(rest[0], _SESSION_KEY_PACKETS):
            esks.append(rest.pop(0))
        if len(rest) != 1 or not isinstance(rest[0], _PAYLOAD_PACKETS):
            raise BadData("encrypted message must end in exactly one encrypted data packet")
        return Encrypted(esks, rest[0])

    if isinstance(first, OnePassSignature):
        # OPS OPS ... body ... SIG SIG, innermost pair adjacent to the body.
        # writers disagree on the nesting flag, so it is not consulted
        ops = []
        rest = list(packets)
        while rest and isinstance(rest[0], OnePassSignature):
            ops.append(rest.pop(0))
        sigs = []
        for _ in ops:
            if not rest or not isinstance(rest[-1], Signature):
                raise BadData("one-pass signature without a matching signature packet")
            sigs.append(PGPSignature() | rest.pop())
        return Signed(sigs, rest)

    if isinstance(first, Signature):
        sigs = []
        rest = list(packets)
        while rest and isinstance(rest[0], Signature):
            sigs.append(PGPSignature() | rest.pop(0))
        return Signed(sigs, rest)

    raise BadData("unexpected {} packet in message".format(first.__class__.__name__))


class Unwrapper(object):
    """
    Unwraps one message with a fixed set of decryption candidates and certificates.

    :param candidates: :py:class:`~pgpysop.candidates.DecryptionCandidate`, passwords first
    :param certs: certificates to check signatures against
    :param now: reference time for signature expiry
    """

    def __init__(self, candidates=(), certs=(), now=None, session_keys=(), not_before=None, not_after=None,
                 max_depth=MAX_DEPTH):
        self.candidates = list(candidates)
        self.certs = list(certs)
        self.now = now
        self.session_keys = list(session_keys)
        self.not_before = not_before
        self.not_after = not_after
        self.max_depth = max_depth

    def unwrap(self, message, decrypt=True):
        """
        Peel ``message`` (packets or :py:class:`Cleartext`) down to its literal data.

        With ``decrypt`` false an encrypted layer is malformed input rather than work to do.
        """
        if isinstance(message, Cleartext):
            return self._cleartext(message)

        remaining = message
        session_key = None
        signatures = []
        encrypted = False
        depth = 0
        while True:
            if depth > self.max_depth:
                raise BadData("message is nested more than {} layers deep".format(self.max_depth))
            layer = classify(remaining)
            logger.debug("layer %d: %s", depth, layer.__class__.__name__)

            if isinstance(layer, Literal):
                break
            if isinstance(layer, Compressed):
                remaining = layer.packets
            elif isinstance(layer, Signed):
                signatures.extend(layer.signatures)
                remaining = layer.packets
            elif isinstance(layer, Encrypted):
                if not decrypt:
                    raise BadData("message is encrypted")
                if isinstance(layer.payload, SKEData) and not isinstance(layer.payload, IntegrityProtectedSKEData):
                    logger.warning("message is not integrity protected")
                found, plaintext = recover_session_key(layer.esks, layer.payload, self.candidates, self.session_keys)
                if session_key is None:
                    session_key = found
                encrypted = True
                remaining = parse_packets(plaintext)
            depth += 1

        plaintext = layer.data
        verifications = []
        if self.certs:
            verifications = check_signatures(signatures, plaintext, self.certs, self.now, self.not_before, self.not_after)
        return UnwrapResult(plaintext, session_key, verifications, signatures, encrypted)

    def _cleartext(self, cleartext):
        text = cleartext.text
        if isinstance(text, str):
            text = text.encode('utf-8')
        text = bytes(text)
        verifications = []
        if self.certs:
            verifications = check_signatures(cleartext.signatures, text, self.certs, self.now, self.not_before,
                                             self.not_after)
        return UnwrapResult(text, None, verifications, list(cleartext.signatures), False)

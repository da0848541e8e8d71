"""OpenPGP card tokens, driven through OpenPGPpy and pyscard."""

import contextlib
from logging import getLogger

from OpenPGPpy import ConnectionException
from OpenPGPpy import OpenPGPcard
from OpenPGPpy import PGPCardException
from smartcard.System import readers

from .errors import HardwareKeyFailure
from .hardware import Slot
from .hardware import Token
from .hardware import TokenTransaction
from .pin import PinRejected

# PW1 references for VERIFY; 0x81 unlocks PSO:CDS, 0x82 unlocks PSO:DECIPHER
PIN_REFERENCES = {
    Slot.Signature: 0x81,
    Slot.Decryption: 0x82,
    Slot.Authentication: 0x82,
}

# user interaction flag data objects
UIF_TAGS = {
    Slot.Signature: "D6",
    Slot.Decryption: "D7",
    Slot.Authentication: "D8",
}

MAX_SHORT_DATA = 0xFF

STATUS_CODES = {
    0x6285: "in termination state",
    0x6581: "memory failure",
    0x6600: "security-related issues",
    0x6700: "wrong length",
    0x6883: "last command of chain expected",
    0x6884: "command chaining not supported",
    0x6982: "security status not satisfied",
    0x6983: "authentication method blocked",
    0x6985: "condition of use not satisfied",
    0x6A80: "incorrect parameters in the command",
    0x6A88: "data object not found",
    0x6D00: "instruction code not supported",
    0x6E00: "class not supported",
    0x6F00: "no precise diagnosis",
    0x9000: "command correct",
}


def count_all_cards():
    """Number of card readers.

    Returns:
        int: Count of readers.
    """
    return len(readers())


def list_tokens():
    """Every reachable OpenPGP card, as tokens.

    Returns:
        list: List of :py:class:`CardToken`.
    """
    tokens = []
    for i in range(0, count_all_cards()):
        try:
            card = OpenPGPcard(reader_index=i)
        except Exception:
            getLogger(__name__).debug("error accessing card by index %x", i, exc_info=True)
            continue
        try:
            tokens.append(CardToken(i, ident_from_app_data(card.get_application_data())))
        finally:
            card.connection.disconnect()
    return tokens


def ident_from_app_data(app_data):
    """Card identity ("MMMM:SSSSSSSS") from the application identifier (4F).

    Arguments:
        app_data: Application-related data object (6E) queried from card.

    Returns:
        str: Manufacturer and serial number, upper case hex.
    """
    aid = app_data.get("4F", "")
    if len(aid) < 28:
        raise HardwareKeyFailure(f"card returned a malformed application identifier: {aid!r}")
    return f"{aid[16:20]}:{aid[20:28]}".upper()


def send_command(card, instruction, parameter_1=0, parameter_2=0, data=b""):
    """Submits the specified command to the specified card.

    Data longer than a short APDU is sent with command chaining.
    If the command fails, will raise a `PGPCardException` with the status bytes.

    Arguments:
        card (OpenPGPcard): Card.
        instruction (int): Instruction byte.
        parameter_1 (int): Parameter 1 byte.
        parameter_2 (int): Parameter 2 byte.
        data (bytes): Command input data.

    Returns:
        bytearray: Command output data.

    Raises:
        PGPCardException: If the command fails.
    """
    chunks = [data[i:i + MAX_SHORT_DATA] for i in range(0, len(data), MAX_SHORT_DATA)] or [b""]
    for n, chunk in enumerate(chunks):
        class_byte = 0x10 if n < len(chunks) - 1 else 0x00
        command = [class_byte, instruction, parameter_1, parameter_2, len(chunk)] + list(chunk)

        result, status_1, status_2 = _send_command_and_zero(card, command)
        while status_1 == 0x61:
            result, status_1, status_2 = _append_get_response(card, result, status_2)

        if status_1 != 0x90 or status_2 != 0x00:
            result[:] = bytearray(len(result))
            raise PGPCardException(status_1, status_2)

    output = bytearray(result)
    result[:] = [0] * len(result)
    return output


def _log_command(cla, ins, p1, p2, lc):
    s = "sending command to card: %x %x %x %x + %x bytes"
    getLogger(__name__).debug(s, cla, ins, p1, p2, lc)


def _log_response(sw1, sw2, length):
    s = "received response from card: %x %x + %x bytes"
    getLogger(__name__).debug(s, sw1, sw2, length)


def _send_command_and_zero(card, command):
    try:
        _log_command(*command[:5])
        result, status_1, status_2 = card.connection.transmit(command)
        _log_response(status_1, status_2, len(result))
        return list(result), status_1, status_2
    finally:
        command[:] = [0] * len(command)


def _append_get_response(card, previous_result, expected_length):
    command = [0x00, 0xC0, 0x00, 0x00, expected_length]
    result, status_1, status_2 = _send_command_and_zero(card, command)

    if not previous_result:
        return result, status_1, status_2
    if not result:
        return previous_result, status_1, status_2

    full_result = previous_result + result
    previous_result[:] = [0] * len(previous_result)
    result[:] = [0] * len(result)
    return full_result, status_1, status_2


class CardTransaction(TokenTransaction):
    """One connected session with an OpenPGP card."""

    def __init__(self, card):
        self.card = card
        self._app_data = None

    @property
    def app_data(self):
        if self._app_data is None:
            self._app_data = self.card.get_application_data()
        return self._app_data

    def _data_object(self, tag):
        return self.app_data.get("73", {}).get(tag) or self.app_data.get(tag)

    def fingerprint(self, slot):
        fingerprints = self._data_object("C5")
        if not fingerprints:
            return None
        offset = (int(slot) - 1) * 40
        fpr = bytes.fromhex(fingerprints[offset:offset + 40])
        if len(fpr) != 20 or not any(fpr):
            return None
        return fpr

    def requires_touch(self, slot):
        uif = self._data_object(UIF_TAGS[slot])
        return bool(uif) and uif[:2] != "00"

    def verify_pin(self, pin, slot):
        try:
            send_command(self.card, 0x20, 0x00, PIN_REFERENCES[slot], pin.encode("utf-8"))
        except PGPCardException as e:
            if e.sw_code & 0xFFF0 == 0x63C0:
                raise PinRejected(e.sw_code - 0x63C0)
            if e.sw_code in (0x6982, 0x6983):
                raise PinRejected(0 if e.sw_code == 0x6983 else None)
            raise HardwareKeyFailure(_describe(e))

    def sign(self, data):
        try:
            return send_command(self.card, 0x2A, 0x9E, 0x9A, data)
        except PGPCardException as e:
            raise HardwareKeyFailure(_describe(e))

    def decipher(self, cryptogram):
        try:
            return send_command(self.card, 0x2A, 0x80, 0x86, cryptogram)
        except PGPCardException as e:
            raise HardwareKeyFailure(_describe(e))


def _describe(e):
    return "card error: " + STATUS_CODES.get(e.sw_code, f"status {e.sw_code:#06x}")


class CardToken(Token):
    """An OpenPGP card in a reader, reconnected for every transaction."""

    def __init__(self, index, ident):
        self.index = index
        self._ident = ident

    @property
    def ident(self):
        return self._ident

    @contextlib.contextmanager
    def transaction(self):
        try:
            card = OpenPGPcard(reader_index=self.index)
        except ConnectionException as e:
            raise HardwareKeyFailure(f"card {self.ident} is no longer reachable: {e}")
        try:
            yield CardTransaction(card)
        finally:
            card.connection.disconnect()

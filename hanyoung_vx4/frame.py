""" Frame encoding and response decoding for the Hanyoung NUX VX4 temperature controller

Every command is an ASCII frame:

    STX  addr  OPCODE , count , REGISTER [, VALUE]  CR LF

 - STX       0x02
 - addr      station address as 2 decimal digits, 00 - 99
 - OPCODE    DRS (read registers) or DWS (write registers)
 - count     number of registers, always 01 here
 - REGISTER  4 hex digit register id, e.g. 0000 (PV) or 0103 (SV)
 - VALUE     4 hex digit register value, only for writes

The controller answers with one comma delimited line. For reads the third field holds the
register value in hex, in tenths of a degree. For writes the line contains "OK" on success.
"""
import collections
import math
import re
from enum import Enum
from typing import List

from hanyoung_vx4.constants import (
    FIELD_DELIMITER,
    FRAME_TERMINATOR,
    MAX_ADDRESS,
    MAX_REGISTER_VALUE,
    MIN_ADDRESS,
    READ_OPCODE,
    REGISTER_COUNT,
    START_OF_TEXT,
    VALUE_SCALE,
    WRITE_ACKNOWLEDGEMENT,
    WRITE_OPCODE,
)
from hanyoung_vx4.exceptions import DecodeFailure, MalformedResponse


class Opcode(Enum):
    READ_REGISTER = READ_OPCODE
    WRITE_REGISTER = WRITE_OPCODE


_HEX_FIELD_REGEX = re.compile(r"[0-9A-Fa-f]+")
_REGISTER_REGEX = re.compile(r"[0-9A-F]{4}")

# status, echo, value
_MIN_READ_RESPONSE_FIELDS = 3
_VALUE_FIELD_INDEX = 2


def get_address_validation_errors(address) -> List[str]:
    """ Validate that a station address fits the 2 digit address field
        Args:
            address: station address
        Returns:
            List of validation errors. Empty if the address is usable.
    """
    if not isinstance(address, int) or isinstance(address, bool):
        return [f"address must be an integer, not {address!r}"]

    validation_errors = {
        f"address < {MIN_ADDRESS}": address < MIN_ADDRESS,
        f"address > {MAX_ADDRESS}": address > MAX_ADDRESS,
    }

    return [error for error, has_error in validation_errors.items() if has_error]


class CommandFrame(
    collections.namedtuple("CommandFrame", ["address", "opcode", "register", "value"])
):
    """ A single command for the controller. Use CommandFrame.read() or CommandFrame.write() to build one. """

    __slots__ = ()

    @classmethod
    def read(cls, address: int, register: str) -> "CommandFrame":
        return cls._validated(address, Opcode.READ_REGISTER, register, None)

    @classmethod
    def write(cls, address: int, register: str, value: float) -> "CommandFrame":
        return cls._validated(
            address, Opcode.WRITE_REGISTER, register, encode_engineering_value(value)
        )

    @classmethod
    def _validated(cls, address, opcode, register, value) -> "CommandFrame":
        errors = get_address_validation_errors(address)
        if not _REGISTER_REGEX.fullmatch(register):
            errors.append(f'register must be 4 uppercase hex digits, not "{register}"')
        if errors:
            raise ValueError(errors)
        return cls(address, opcode, register, value)

    def encode(self) -> bytes:
        fields = [self.opcode.value, REGISTER_COUNT, self.register]
        if self.value is not None:
            fields.append(self.value)

        body = f"{self.address:02d}" + FIELD_DELIMITER.join(fields)
        return START_OF_TEXT + body.encode("ascii") + FRAME_TERMINATOR


def encode_engineering_value(value: float) -> str:
    """ Convert a temperature to the 4 digit hex register value the controller expects.
    The register holds tenths of a degree as an unsigned 16 bit number, so values outside
    0 - 6553.5 are clamped.

    Raises:
        ValueError if value is NaN or infinite
    """
    if not math.isfinite(value):
        raise ValueError(f"Can't encode non-finite value {value}")

    # Clamp first: huge finite values overflow to inf once scaled
    clamped_value = min(max(value, 0), MAX_REGISTER_VALUE / VALUE_SCALE)
    tenths = min(round(clamped_value * VALUE_SCALE), MAX_REGISTER_VALUE)
    return f"{tenths:04X}"


def decode_engineering_value(value_field: str) -> float:
    """ Convert a hex register value from a response to a temperature, e.g. "00C8" -> 20.0

    Raises:
        DecodeFailure if value_field isn't an unsigned hexadecimal number
    """
    if not _HEX_FIELD_REGEX.fullmatch(value_field):
        raise DecodeFailure(f'Value field "{value_field}" is not valid hexadecimal')

    return int(value_field, 16) / VALUE_SCALE


def split_response(response: str) -> List[str]:
    return response.split(FIELD_DELIMITER)


def parse_read_response(response: str) -> float:
    """ Parse the value out of the controller's response to a read command

    Args:
        response: response line, e.g. "OK,01,00C8"

    Returns:
        decoded value, e.g. 20.0

    Raises:
        MalformedResponse if the response is empty or has too few fields
        DecodeFailure if the value field isn't valid hexadecimal
    """
    if not response:
        raise MalformedResponse("Empty response")

    fields = split_response(response)
    if len(fields) < _MIN_READ_RESPONSE_FIELDS:
        raise MalformedResponse(
            f'Response "{response}" contained {len(fields)} fields instead of '
            f"at least {_MIN_READ_RESPONSE_FIELDS}"
        )

    return decode_engineering_value(fields[_VALUE_FIELD_INDEX].strip())


def is_write_acknowledged(response: str) -> bool:
    return bool(response) and WRITE_ACKNOWLEDGEMENT in response

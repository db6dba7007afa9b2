import collections
from enum import Enum
from typing import List

import serial


class Parity(Enum):
    NONE = serial.PARITY_NONE
    ODD = serial.PARITY_ODD
    EVEN = serial.PARITY_EVEN
    MARK = serial.PARITY_MARK
    SPACE = serial.PARITY_SPACE


class StopBits(Enum):
    ONE = serial.STOPBITS_ONE
    ONE_POINT_FIVE = serial.STOPBITS_ONE_POINT_FIVE
    TWO = serial.STOPBITS_TWO


_MIN_DATA_BITS = 5
_MAX_DATA_BITS = 8


# Serial link parameters, resolved once (usually from the port settings file) and never mutated
LinkConfig = collections.namedtuple(
    "LinkConfig", ["port", "baud_rate", "parity", "data_bits", "stop_bits"]
)


def _is_int(value) -> bool:
    # bool is an int subclass but True isn't a sensible baud rate
    return isinstance(value, int) and not isinstance(value, bool)


def get_link_config_validation_errors(link_config: LinkConfig) -> List[str]:
    """ Validate serial link parameters before we try to open a port with them.
        Args:
            link_config: LinkConfig to check
        Returns:
            List of human readable validation errors. Empty if the config is usable.
    """
    validation_errors = {
        "port must be a non-empty string": not (
            isinstance(link_config.port, str) and link_config.port
        ),
        "baud rate must be a positive integer": not (
            _is_int(link_config.baud_rate) and link_config.baud_rate > 0
        ),
        "parity must be a Parity": not isinstance(link_config.parity, Parity),
        f"data bits must be between {_MIN_DATA_BITS} and {_MAX_DATA_BITS}": not (
            _is_int(link_config.data_bits)
            and _MIN_DATA_BITS <= link_config.data_bits <= _MAX_DATA_BITS
        ),
        "stop bits must be a StopBits": not isinstance(
            link_config.stop_bits, StopBits
        ),
    }

    return [error for error, has_error in validation_errors.items() if has_error]


def validate_link_config(link_config: LinkConfig) -> LinkConfig:
    """ Raise ValueError with a list of problems if link_config can't be used; otherwise return it """
    errors = get_link_config_validation_errors(link_config)
    if errors:
        raise ValueError(errors)
    return link_config

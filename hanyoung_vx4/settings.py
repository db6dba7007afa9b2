# Load serial link parameters from the VX4 port info ini file
import configparser
import logging

from hanyoung_vx4.exceptions import SettingsError
from hanyoung_vx4.link_config import (
    LinkConfig,
    Parity,
    StopBits,
    get_link_config_validation_errors,
)

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILENAME = "HanyoungNuxVX4PortInfo.ini"

# The ini file stores the numeric codes of the serial port library the controller software was written against
_PARITY_CODE_TO_PARITY = {
    0: Parity.NONE,
    1: Parity.ODD,
    2: Parity.EVEN,
    3: Parity.MARK,
    4: Parity.SPACE,
}

# 0 means "no stop bits", which serial ports don't support
_STOP_BITS_CODE_TO_STOP_BITS = {
    1: StopBits.ONE,
    2: StopBits.TWO,
    3: StopBits.ONE_POINT_FIVE,
}

# Each value lives in its own section: (section, key)
_PORT_KEY = ("PortName", "Port")
_BAUD_RATE_KEY = ("BaudRate", "BaudRate")
_PARITY_KEY = ("Parity", "Parity")
_DATA_BITS_KEY = ("DataBits", "DataBits")
_STOP_BITS_KEY = ("StopBits", "StopBits")


def _get_value(parser: configparser.ConfigParser, section_and_key) -> str:
    section, key = section_and_key
    try:
        value = parser.get(section, key).strip()
    except (configparser.NoSectionError, configparser.NoOptionError):
        raise SettingsError(f"Port settings are missing [{section}] {key}")

    if not value:
        raise SettingsError(f"Port setting [{section}] {key} is empty")
    return value


def _get_int(parser: configparser.ConfigParser, section_and_key) -> int:
    value = _get_value(parser, section_and_key)
    try:
        return int(value)
    except ValueError:
        section, key = section_and_key
        raise SettingsError(
            f'Port setting [{section}] {key} should be an integer but was "{value}"'
        )


def _get_code(parser, section_and_key, code_to_value):
    code = _get_int(parser, section_and_key)
    if code not in code_to_value:
        section, key = section_and_key
        raise SettingsError(
            f"Port setting [{section}] {key} has unknown code {code}. "
            f"Expected one of {sorted(code_to_value)}"
        )
    return code_to_value[code]


def parse_link_config(settings_text: str) -> LinkConfig:
    """ Parse the contents of a port info ini file into a LinkConfig

    Args:
        settings_text: ini file contents

    Returns:
        LinkConfig

    Raises:
        SettingsError if a value is missing, malformed or out of range
    """
    parser = configparser.ConfigParser(inline_comment_prefixes=(";",))
    try:
        parser.read_string(settings_text)
    except configparser.Error as e:
        raise SettingsError(f"Could not parse port settings: {e}")

    link_config = LinkConfig(
        port=_get_value(parser, _PORT_KEY),
        baud_rate=_get_int(parser, _BAUD_RATE_KEY),
        parity=_get_code(parser, _PARITY_KEY, _PARITY_CODE_TO_PARITY),
        data_bits=_get_int(parser, _DATA_BITS_KEY),
        stop_bits=_get_code(parser, _STOP_BITS_KEY, _STOP_BITS_CODE_TO_STOP_BITS),
    )

    errors = get_link_config_validation_errors(link_config)
    if errors:
        raise SettingsError(f"Invalid port settings: {errors}")

    return link_config


def load_link_config(settings_filepath: str) -> LinkConfig:
    """ Read serial link parameters from a port info ini file. Settings are read once;
    changing the file afterwards has no effect on controllers already built from it.

    Args:
        settings_filepath: path to the ini file, e.g. "SerialComm/HanyoungNuxVX4PortInfo.ini"

    Returns:
        LinkConfig

    Raises:
        SettingsError if the file can't be read or its contents are invalid
    """
    logger.debug(f"Loading port settings from {settings_filepath}")
    try:
        with open(settings_filepath) as settings_file:
            settings_text = settings_file.read()
    except OSError as e:
        raise SettingsError(f"Could not read port settings file {settings_filepath}: {e}")

    return parse_link_config(settings_text)

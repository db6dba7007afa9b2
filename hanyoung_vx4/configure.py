import argparse
import os
from collections import namedtuple
from typing import Dict, List

from hanyoung_vx4.constants import DEFAULT_READ_TIMEOUT
from hanyoung_vx4.settings import DEFAULT_SETTINGS_FILENAME, load_link_config

DEFAULT_SETTINGS_FILEPATH = os.path.join("SerialComm", DEFAULT_SETTINGS_FILENAME)

OPERATIONS = ["read-pv", "read-sv", "set-sv"]

Vx4Configuration = namedtuple(
    "Vx4Configuration",
    [
        "link_config",
        "operation",
        "address",
        "value",
        "log_directory",
        "retries",
        "timeout",
    ],
)


def _parse_args(args: List[str]) -> Dict:
    arg_parser = argparse.ArgumentParser(
        description="Read or set the temperature of a Hanyoung NUX VX4 controller",
        formatter_class=argparse.RawTextHelpFormatter,
    )

    arg_parser.add_argument(
        "operation",
        choices=OPERATIONS,
        help=(
            "read-pv: read the measured temperature\n"
            "read-sv: read the setpoint\n"
            "set-sv: change the setpoint (requires VALUE)"
        ),
    )

    arg_parser.add_argument("address", type=int, help="station address, 0 - 99")

    arg_parser.add_argument(
        "value", type=float, nargs="?", help="new setpoint for set-sv, in degrees"
    )

    arg_parser.add_argument(
        "-s",
        "--settings",
        dest="settings_filepath",
        default=DEFAULT_SETTINGS_FILEPATH,
        help=f"port settings ini file. Default: {DEFAULT_SETTINGS_FILEPATH}",
    )

    arg_parser.add_argument(
        "-p",
        "--port",
        help="override the serial port from the settings file, e.g. COM3 or /dev/ttyUSB0",
    )

    arg_parser.add_argument(
        "--log-dir",
        dest="log_directory",
        help="also write events to a daily log file in this directory",
    )

    arg_parser.add_argument(
        "--retries",
        type=int,
        default=0,
        help="number of times to retry a failed operation. Default: 0",
    )

    arg_parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_READ_TIMEOUT,
        help=f"seconds to wait for a response. Default: {DEFAULT_READ_TIMEOUT}",
    )

    vx4_arg_namespace = arg_parser.parse_args(args)

    if vx4_arg_namespace.operation == "set-sv" and vx4_arg_namespace.value is None:
        arg_parser.error("set-sv requires a VALUE")
    if vx4_arg_namespace.operation != "set-sv" and vx4_arg_namespace.value is not None:
        arg_parser.error(f"{vx4_arg_namespace.operation} doesn't take a VALUE")
    if vx4_arg_namespace.retries < 0:
        arg_parser.error("--retries can't be negative")
    if vx4_arg_namespace.timeout <= 0:
        arg_parser.error("--timeout must be positive")

    return vars(vx4_arg_namespace)


def get_vx4_configuration(cli_args: List[str]) -> Vx4Configuration:
    """ Resolve command line arguments and the port settings file into a Vx4Configuration

    Args:
        cli_args: command line arguments, without the program name

    Raises:
        SettingsError if the port settings file is missing or invalid
    """
    args = _parse_args(cli_args)

    link_config = load_link_config(args["settings_filepath"])
    if args["port"]:
        link_config = link_config._replace(port=args["port"])

    return Vx4Configuration(
        link_config=link_config,
        operation=args["operation"],
        address=args["address"],
        value=args["value"],
        log_directory=args["log_directory"],
        retries=args["retries"],
        timeout=args["timeout"],
    )

import sys
import logging

from .configure import get_vx4_configuration
from .controller import Controller
from .event_log import default_log_sink, get_file_log_sink
from .exceptions import SettingsError
from .retry import retry_on_failure


def _get_log_sink(log_directory):
    if log_directory is None:
        return default_log_sink

    file_log_sink = get_file_log_sink(log_directory)

    def log_sink(message):
        default_log_sink(message)
        file_log_sink(message)

    return log_sink


def _get_operation(controller, configuration):
    operation = {
        "read-pv": lambda: controller.read_pv(configuration.address),
        "read-sv": lambda: controller.read_sv(configuration.address),
        "set-sv": lambda: controller.set_sv(
            configuration.address, configuration.value
        ),
    }[configuration.operation]

    if configuration.retries:
        # max_tries counts the first attempt
        return retry_on_failure(max_tries=configuration.retries + 1)(operation)
    return operation


def run(cli_args=None):
    logging_format = "%(asctime)s [%(levelname)s]--- %(message)s"
    logging.basicConfig(
        level=logging.INFO, format=logging_format, handlers=[logging.StreamHandler()]
    )

    if cli_args is None:
        # First argument is the name of the command itself, not an "argument" we want to parse
        cli_args = sys.argv[1:]

    try:
        configuration = get_vx4_configuration(cli_args)
    except SettingsError as e:
        logging.error(str(e))
        return 1

    controller = Controller(
        configuration.link_config,
        log_sink=_get_log_sink(configuration.log_directory),
        read_timeout=configuration.timeout,
    )

    if not controller.connect():
        logging.error(f"Could not connect on {configuration.link_config.port}")
        return 1

    try:
        result = _get_operation(controller, configuration)()
    finally:
        controller.disconnect()

    if configuration.operation == "set-sv":
        if not result:
            logging.error(f"Setpoint {configuration.value} was not acknowledged")
            return 1
        print("OK")
        return 0

    if not result.ok:
        logging.error(f"Read failed: {result.status.value}")
        return 1
    print(result)
    return 0


def main():
    sys.exit(run())

import logging
import threading
import time
from typing import Optional

import serial

from hanyoung_vx4.constants import (
    DEFAULT_READ_TIMEOUT,
    DEFAULT_WRITE_TIMEOUT,
    RESPONSE_TERMINATOR,
    SETTLE_INTERVAL,
)
from hanyoung_vx4.event_log import LogSink, default_log_sink, guard_log_sink
from hanyoung_vx4.exceptions import (
    Cancelled,
    IoFailure,
    NotConnected,
    OpenFailure,
    Timeout,
)
from hanyoung_vx4.link_config import LinkConfig, validate_link_config

logger = logging.getLogger(__name__)

# Whitespace plus the ASCII control characters (STX, ETX, NUL...) the controller can leave at the end of a line
_TRAILING_CHARACTERS = "".join(chr(code) for code in range(0x20)) + " \x7f"


def _clean_response(response_bytes: bytes) -> str:
    return (
        response_bytes.decode("ascii", errors="replace")
        .rstrip(_TRAILING_CHARACTERS)
        .lstrip()
    )


class Transport:
    """ Owns the serial port connected to a VX4 controller and serializes command/response exchanges on it.

    Only one exchange occupies the port at a time: concurrent callers of transact() wait their turn.
    Nothing is retried here; that's up to the caller.
    """

    def __init__(
        self,
        link_config: LinkConfig,
        log_sink: Optional[LogSink] = None,
        settle_interval: float = SETTLE_INTERVAL,
    ):
        self.link_config = validate_link_config(link_config)
        self.settle_interval = settle_interval
        self._log_sink = guard_log_sink(log_sink or default_log_sink)
        self._connection = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._connection is not None and self._connection.is_open

    def open(self) -> None:
        """ Open the serial port. Does nothing if it's already open.

        Raises:
            OpenFailure if the port can't be opened (busy, doesn't exist, no permission, bad parameters)
        """
        with self._lock:
            if self.is_open:
                return

            connection = serial.Serial()
            try:
                connection.port = self.link_config.port
                connection.baudrate = self.link_config.baud_rate
                connection.parity = self.link_config.parity.value
                connection.bytesize = self.link_config.data_bits
                connection.stopbits = self.link_config.stop_bits.value
                connection.timeout = DEFAULT_READ_TIMEOUT
                connection.write_timeout = DEFAULT_WRITE_TIMEOUT
                connection.open()
            except (serial.SerialException, ValueError, OSError) as e:
                raise OpenFailure(
                    f"Could not open serial port {self.link_config.port}: {e}", cause=e
                ) from e

            logger.debug(f"Opened serial port {self.link_config.port}")
            self._connection = connection

    def close(self) -> None:
        """ Close the serial port. Safe to call when it's already closed. """
        with self._lock:
            if self._connection is None:
                return

            connection, self._connection = self._connection, None
            try:
                connection.close()
            except (serial.SerialException, OSError):
                # The handle is discarded either way
                logger.warning(
                    f"Error closing serial port {self.link_config.port}", exc_info=True
                )
            logger.debug(f"Closed serial port {self.link_config.port}")

    def _exchange(
        self,
        command: bytes,
        read_timeout: float,
        write_timeout: float,
        cancel: Optional[threading.Event],
    ) -> str:
        connection = self._connection
        connection.timeout = read_timeout
        connection.write_timeout = write_timeout

        # Throw away anything left over from a previous exchange so it can't be mistaken for this response
        connection.reset_input_buffer()

        if cancel is not None and cancel.is_set():
            raise Cancelled("Exchange cancelled before the command was sent")

        connection.write(command)
        self._log_sink(f"Sent: {command!r}")

        if cancel is not None:
            if cancel.wait(self.settle_interval):
                raise Cancelled("Exchange cancelled while waiting for the response")
        else:
            time.sleep(self.settle_interval)

        response_bytes = connection.read_until(RESPONSE_TERMINATOR)
        logger.debug(f"Serial response on {self.link_config.port}: {response_bytes!r}")

        if not response_bytes.endswith(RESPONSE_TERMINATOR):
            raise Timeout(
                f"No complete response line within {read_timeout}s. "
                f"Received {response_bytes!r}"
            )

        response = _clean_response(response_bytes)
        self._log_sink(f"Received: {response}")
        return response

    def transact(
        self,
        command: bytes,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        """ Send a command and return the single line the controller sends back

        Args:
            command: complete frame to send, including its terminator
            read_timeout: seconds to wait for a terminated response line, after the settle interval
            write_timeout: seconds to wait for the command to be written
            cancel: if provided and set before the response is read, the exchange is abandoned

        Returns:
            response line with trailing whitespace and control characters stripped

        Raises:
            NotConnected if the port isn't open. No I/O is attempted.
            Timeout if the command couldn't be written or no complete line arrived in time
            Cancelled if cancel was set before the response was read
            IoFailure if the serial port failed, e.g. the cable was pulled. The cause is attached.
        """
        with self._lock:
            if not self.is_open:
                raise NotConnected(f"Serial port {self.link_config.port} is not open")

            logger.debug(f"Serial command on {self.link_config.port}: {command!r}")

            try:
                return self._exchange(command, read_timeout, write_timeout, cancel)
            except serial.SerialTimeoutException as e:
                raise Timeout(f"Writing command timed out after {write_timeout}s") from e
            except (serial.SerialException, OSError) as e:
                raise IoFailure(
                    f"Serial I/O failed on {self.link_config.port}: {e}", cause=e
                ) from e

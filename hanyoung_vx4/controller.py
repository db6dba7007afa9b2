import collections
import threading
from enum import Enum
from typing import Optional

from hanyoung_vx4.constants import (
    DEFAULT_READ_TIMEOUT,
    DEFAULT_WRITE_TIMEOUT,
    PV_REGISTER,
    SV_REGISTER,
)
from hanyoung_vx4.event_log import LogSink, default_log_sink, guard_log_sink
from hanyoung_vx4.exceptions import (
    Cancelled,
    DecodeFailure,
    IoFailure,
    MalformedResponse,
    NotConnected,
    OpenFailure,
    Timeout,
    TransportError,
)
from hanyoung_vx4.frame import CommandFrame, is_write_acknowledged, parse_read_response
from hanyoung_vx4.link_config import LinkConfig
from hanyoung_vx4.transport import Transport


class ReadStatus(Enum):
    OK = "ok"
    NOT_CONNECTED = "not connected"
    TIMEOUT = "timeout"
    IO_FAILURE = "I/O failure"
    CANCELLED = "cancelled"
    MALFORMED_RESPONSE = "malformed response"
    DECODE_FAILURE = "decode failure"
    INVALID_REQUEST = "invalid request"


_EXCEPTION_TO_STATUS = {
    NotConnected: ReadStatus.NOT_CONNECTED,
    Timeout: ReadStatus.TIMEOUT,
    IoFailure: ReadStatus.IO_FAILURE,
    Cancelled: ReadStatus.CANCELLED,
    MalformedResponse: ReadStatus.MALFORMED_RESPONSE,
    DecodeFailure: ReadStatus.DECODE_FAILURE,
}


def _status_for(error: Exception) -> ReadStatus:
    for exception_class, status in _EXCEPTION_TO_STATUS.items():
        if isinstance(error, exception_class):
            return status
    return ReadStatus.IO_FAILURE


class Reading(collections.namedtuple("Reading", ["status", "value", "response"])):
    """ Outcome of reading a value from the controller.

    value is only set when status is ReadStatus.OK. A failed reading never carries a number, so check
    `reading.ok` rather than comparing the value against zero.
    """

    __slots__ = ()

    @property
    def ok(self) -> bool:
        return self.status is ReadStatus.OK

    @classmethod
    def failed(cls, status: ReadStatus, response: Optional[str] = None) -> "Reading":
        return cls(status, None, response)

    def __str__(self):
        if self.ok:
            return f"{self.value:.1f}"
        return f"<{self.status.value}>"


class Controller:
    """ Read and write the process value (PV) and setpoint (SV) of Hanyoung NUX VX4 temperature controllers

    Usage:
    >>> with Controller(load_link_config("HanyoungNuxVX4PortInfo.ini")) as controller:
    >>>     reading = controller.read_pv(1)
    >>>     if reading.ok:
    >>>         print(reading.value)

    None of the operations raise: failures are reported to the log sink and returned as
    a failed Reading (reads) or False (writes).
    """

    def __init__(
        self,
        link_config: LinkConfig,
        log_sink: Optional[LogSink] = None,
        transport: Optional[Transport] = None,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
    ):
        self.link_config = link_config
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self._log_sink = guard_log_sink(log_sink or default_log_sink)
        self._transport = (
            transport if transport is not None else Transport(link_config, log_sink)
        )
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> bool:
        """ Open the serial port. Returns True if it's open (including if it was already open) """
        try:
            self._transport.open()
        except OpenFailure as e:
            self._log_sink(f"[ERROR] opening serial port: {e}")
            return False

        self._connected = True
        self._log_sink("Connected to VX4 controller")
        return True

    def disconnect(self) -> None:
        self._transport.close()
        self._connected = False

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.disconnect()

    def _transact(self, frame: CommandFrame, cancel: Optional[threading.Event]) -> str:
        return self._transport.transact(
            frame.encode(),
            read_timeout=self.read_timeout,
            write_timeout=self.write_timeout,
            cancel=cancel,
        )

    def _read(
        self,
        operation: str,
        address: int,
        register: str,
        cancel: Optional[threading.Event],
    ) -> Reading:
        if not self._connected:
            self._log_sink(f"[ERROR] {operation}({address}): not connected")
            return Reading.failed(ReadStatus.NOT_CONNECTED)

        try:
            frame = CommandFrame.read(address, register)
        except ValueError as e:
            self._log_sink(f"[ERROR] {operation}({address}): invalid request {e}")
            return Reading.failed(ReadStatus.INVALID_REQUEST)

        try:
            response = self._transact(frame, cancel)
        except TransportError as e:
            self._log_sink(
                f"[ERROR] {operation}({address}) {type(e).__name__}: {e}"
            )
            return Reading.failed(_status_for(e))

        try:
            value = parse_read_response(response)
        except (MalformedResponse, DecodeFailure) as e:
            self._log_sink(
                f'[ERROR] {operation}({address}) {type(e).__name__}: {e}. Response: "{response}"'
            )
            return Reading.failed(_status_for(e), response)

        return Reading(ReadStatus.OK, value, response)

    def read_pv(self, address: int, cancel: Optional[threading.Event] = None) -> Reading:
        """ Read the process value (measured temperature) of the controller at address """
        return self._read("ReadPV", address, PV_REGISTER, cancel)

    def read_sv(self, address: int, cancel: Optional[threading.Event] = None) -> Reading:
        """ Read the setpoint (target temperature) of the controller at address """
        return self._read("ReadSV", address, SV_REGISTER, cancel)

    def set_sv(
        self, address: int, value: float, cancel: Optional[threading.Event] = None
    ) -> bool:
        """ Set the setpoint (target temperature) of the controller at address

        Args:
            address: station address, 0 - 99
            value: setpoint in degrees. Sent with 0.1 degree resolution.
            cancel: if provided and set before the response is read, the write is abandoned

        Returns:
            True if the controller acknowledged the write with "OK"
        """
        operation = "SetSV"
        if not self._connected:
            self._log_sink(f"[ERROR] {operation}({address}, {value}): not connected")
            return False

        try:
            frame = CommandFrame.write(address, SV_REGISTER, value)
        except (ValueError, TypeError, OverflowError) as e:
            self._log_sink(
                f"[ERROR] {operation}({address}, {value}): invalid request {e}"
            )
            return False

        try:
            response = self._transact(frame, cancel)
        except TransportError as e:
            self._log_sink(
                f"[ERROR] {operation}({address}, {value}) {type(e).__name__}: {e}"
            )
            return False

        if not is_write_acknowledged(response):
            self._log_sink(
                f'[ERROR] {operation}({address}, {value}) not acknowledged. Response: "{response}"'
            )
            return False

        return True

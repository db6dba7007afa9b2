import threading
import time
from unittest.mock import sentinel

import pytest

import hanyoung_vx4.transport as module
from hanyoung_vx4.exceptions import (
    Cancelled,
    IoFailure,
    NotConnected,
    OpenFailure,
    Timeout,
)
from hanyoung_vx4.link_config import LinkConfig, Parity, StopBits


LINK_CONFIG = LinkConfig(
    port="COM3", baud_rate=9600, parity=Parity.NONE, data_bits=8, stop_bits=StopBits.ONE
)


@pytest.fixture
def mock_serial_class_and_connection(mocker):
    mock_serial_class = mocker.patch.object(module.serial, "Serial")
    mock_connection = mock_serial_class.return_value
    mock_connection.is_open = True
    mock_connection.read_until.return_value = b"OK,01,00C8\r\n"
    return mock_serial_class, mock_connection


@pytest.fixture
def mock_log_sink(mocker):
    return mocker.Mock()


@pytest.fixture
def transport(mock_serial_class_and_connection, mock_log_sink):
    return module.Transport(LINK_CONFIG, mock_log_sink, settle_interval=0)


@pytest.fixture
def open_transport(transport):
    transport.open()
    return transport


class TestCleanResponse:
    @pytest.mark.parametrize(
        "response_bytes, expected",
        [
            (b"OK,01,00C8\r\n", "OK,01,00C8"),
            (b"OK\r\n", "OK"),
            (b"  OK,01,00C8 \x03\r\n", "OK,01,00C8"),
            (b"\r\n", ""),
        ],
    )
    def test_strips_trailing_whitespace_and_control_characters(
        self, response_bytes, expected
    ):
        assert module._clean_response(response_bytes) == expected


class TestOpen:
    def test_configures_and_opens_serial_port(
        self, transport, mock_serial_class_and_connection
    ):
        mock_serial_class, mock_connection = mock_serial_class_and_connection

        transport.open()

        mock_serial_class.assert_called_once_with()
        assert mock_connection.port == "COM3"
        assert mock_connection.baudrate == 9600
        assert mock_connection.parity == module.serial.PARITY_NONE
        assert mock_connection.bytesize == 8
        assert mock_connection.stopbits == module.serial.STOPBITS_ONE
        mock_connection.open.assert_called_once_with()
        assert transport.is_open

    def test_is_idempotent(self, transport, mock_serial_class_and_connection):
        mock_serial_class, mock_connection = mock_serial_class_and_connection

        transport.open()
        transport.open()

        mock_serial_class.assert_called_once_with()
        mock_connection.open.assert_called_once_with()

    def test_raises_open_failure_with_cause(
        self, transport, mock_serial_class_and_connection
    ):
        mock_serial_class, mock_connection = mock_serial_class_and_connection
        cause = module.serial.SerialException("could not open port COM3: busy")
        mock_connection.open.side_effect = cause

        with pytest.raises(OpenFailure, match="busy") as exception_info:
            transport.open()

        assert exception_info.value.cause is cause
        assert not transport.is_open


class TestClose:
    def test_closes_serial_port(self, open_transport, mock_serial_class_and_connection):
        _, mock_connection = mock_serial_class_and_connection

        open_transport.close()

        mock_connection.close.assert_called_once_with()
        assert not open_transport.is_open

    def test_is_safe_when_already_closed(
        self, transport, mock_serial_class_and_connection
    ):
        _, mock_connection = mock_serial_class_and_connection

        transport.close()
        transport.close()

        mock_connection.close.assert_not_called()


class TestTransact:
    def test_returns_cleaned_response_line(self, open_transport):
        assert open_transport.transact(b"\x0201DRS,01,0000\r\n") == "OK,01,00C8"

    def test_discards_stale_input_then_writes_then_reads(
        self, mocker, open_transport, mock_serial_class_and_connection
    ):
        _, mock_connection = mock_serial_class_and_connection

        open_transport.transact(sentinel.command)

        assert mock_connection.method_calls[-3:] == [
            mocker.call.reset_input_buffer(),
            mocker.call.write(sentinel.command),
            mocker.call.read_until(b"\n"),
        ]

    def test_applies_timeouts(self, open_transport, mock_serial_class_and_connection):
        _, mock_connection = mock_serial_class_and_connection

        open_transport.transact(b"command", read_timeout=2.5, write_timeout=0.5)

        assert mock_connection.timeout == 2.5
        assert mock_connection.write_timeout == 0.5

    def test_waits_settle_interval_before_reading(
        self, mocker, mock_serial_class_and_connection, mock_log_sink
    ):
        mock_sleep = mocker.patch.object(module.time, "sleep")
        transport = module.Transport(LINK_CONFIG, mock_log_sink)
        transport.open()

        transport.transact(b"command")

        mock_sleep.assert_called_once_with(0.15)

    def test_reports_sent_and_received_to_log_sink(
        self, mocker, open_transport, mock_log_sink
    ):
        open_transport.transact(b"\x0201DRS,01,0000\r\n")

        mock_log_sink.assert_has_calls(
            [
                mocker.call("Sent: b'\\x0201DRS,01,0000\\r\\n'"),
                mocker.call("Received: OK,01,00C8"),
            ]
        )

    def test_raises_not_connected_without_io_when_closed(
        self, transport, mock_serial_class_and_connection
    ):
        _, mock_connection = mock_serial_class_and_connection

        with pytest.raises(NotConnected):
            transport.transact(b"command")

        mock_connection.write.assert_not_called()
        mock_connection.read_until.assert_not_called()

    def test_raises_not_connected_after_close(self, open_transport):
        open_transport.close()

        with pytest.raises(NotConnected):
            open_transport.transact(b"command")

    @pytest.mark.parametrize("partial_response", [b"", b"OK,01,00"])
    def test_raises_timeout_when_line_is_not_terminated(
        self, open_transport, mock_serial_class_and_connection, partial_response
    ):
        _, mock_connection = mock_serial_class_and_connection
        mock_connection.read_until.return_value = partial_response

        with pytest.raises(Timeout):
            open_transport.transact(b"command")

    def test_raises_timeout_when_write_times_out(
        self, open_transport, mock_serial_class_and_connection
    ):
        _, mock_connection = mock_serial_class_and_connection
        mock_connection.write.side_effect = module.serial.SerialTimeoutException(
            "Write timeout"
        )

        with pytest.raises(Timeout):
            open_transport.transact(b"command")

    def test_raises_io_failure_with_cause(
        self, open_transport, mock_serial_class_and_connection
    ):
        _, mock_connection = mock_serial_class_and_connection
        cause = module.serial.SerialException("device reports readiness to read but returned no data")
        mock_connection.read_until.side_effect = cause

        with pytest.raises(IoFailure) as exception_info:
            open_transport.transact(b"command")

        assert exception_info.value.cause is cause

    def test_stays_open_and_usable_after_a_fault(
        self, open_transport, mock_serial_class_and_connection
    ):
        _, mock_connection = mock_serial_class_and_connection
        mock_connection.read_until.side_effect = [
            OSError("Input/output error"),
            b"OK,01,00C8\r\n",
        ]

        with pytest.raises(IoFailure):
            open_transport.transact(b"command")

        assert open_transport.is_open
        assert open_transport.transact(b"command") == "OK,01,00C8"

    def test_cancel_set_before_sending_skips_write(
        self, open_transport, mock_serial_class_and_connection
    ):
        _, mock_connection = mock_serial_class_and_connection
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(Cancelled):
            open_transport.transact(b"command", cancel=cancel)

        mock_connection.write.assert_not_called()

    def test_cancel_during_settle_skips_read(
        self, mock_serial_class_and_connection, mock_log_sink
    ):
        _, mock_connection = mock_serial_class_and_connection
        transport = module.Transport(LINK_CONFIG, mock_log_sink, settle_interval=5)
        transport.open()
        cancel = threading.Event()
        mock_connection.write.side_effect = lambda command: cancel.set()

        with pytest.raises(Cancelled):
            transport.transact(b"command", cancel=cancel)

        mock_connection.read_until.assert_not_called()

    def test_log_sink_failure_does_not_abort_transaction(
        self, mock_serial_class_and_connection
    ):
        def broken_log_sink(message):
            raise IOError("disk full")

        transport = module.Transport(LINK_CONFIG, broken_log_sink, settle_interval=0)
        transport.open()

        assert transport.transact(b"command") == "OK,01,00C8"

    def test_concurrent_callers_never_interleave(
        self, mock_serial_class_and_connection, mock_log_sink
    ):
        _, mock_connection = mock_serial_class_and_connection
        exchanges = []
        in_flight = {}

        def record_write(command):
            in_flight[threading.get_ident()] = (command, time.monotonic())
            time.sleep(0.005)

        def record_read(terminator):
            command, started = in_flight.pop(threading.get_ident())
            time.sleep(0.005)
            exchanges.append((started, time.monotonic(), command))
            return command.replace(b"\x02", b"").replace(b"\r\n", b"") + b",OK\r\n"

        mock_connection.write.side_effect = record_write
        mock_connection.read_until.side_effect = record_read

        transport = module.Transport(LINK_CONFIG, mock_log_sink, settle_interval=0.005)
        transport.open()

        responses = {}

        def caller(index):
            command = f"\x02{index:02d}DRS,01,0000\r\n".encode()
            responses[index] = transport.transact(command)

        threads = [threading.Thread(target=caller, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(exchanges) == 8
        ordered_exchanges = sorted(exchanges)
        for (_, previous_end, _), (next_start, _, _) in zip(
            ordered_exchanges, ordered_exchanges[1:]
        ):
            assert previous_end <= next_start

        # Each caller got the response to its own command
        for index, response in responses.items():
            assert response == f"{index:02d}DRS,01,0000,OK"

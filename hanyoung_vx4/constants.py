# Constants for the Hanyoung NUX VX4 temperature controller serial protocol

# Every frame starts with STX and ends with CR LF
START_OF_TEXT = b"\x02"
FRAME_TERMINATOR = b"\r\n"

# The controller terminates each response line with LF
RESPONSE_TERMINATOR = b"\n"

FIELD_DELIMITER = ","

READ_OPCODE = "DRS"
WRITE_OPCODE = "DWS"

# Number of consecutive registers to read or write. Always one.
REGISTER_COUNT = "01"

PV_REGISTER = "0000"
SV_REGISTER = "0103"

WRITE_ACKNOWLEDGEMENT = "OK"

MIN_ADDRESS = 0
MAX_ADDRESS = 99

# Values are transferred as tenths of a degree in an unsigned 16 bit register
VALUE_SCALE = 10.0
MAX_REGISTER_VALUE = 0xFFFF

# The controller doesn't respond instantaneously. Wait this long after writing a command
# before attempting to read its response.
SETTLE_INTERVAL = 0.15

DEFAULT_READ_TIMEOUT = 1.0
DEFAULT_WRITE_TIMEOUT = 1.0

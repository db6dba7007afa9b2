class Vx4Error(Exception):
    # Base class for errors raised while talking to the VX4 controller
    pass


class TransportError(Vx4Error):
    # Error class used when a command/response exchange couldn't be completed
    pass


class NotConnected(TransportError):
    # The serial port was never opened or has been closed
    pass


class Timeout(TransportError):
    # Writing the command or reading the response took longer than allowed
    pass


class Cancelled(TransportError):
    # The caller abandoned the exchange before the response was read
    pass


class IoFailure(TransportError):
    # The serial port failed underneath us, e.g. the cable was pulled

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.cause = cause


class OpenFailure(TransportError):
    # The serial port couldn't be opened: busy, missing or not permitted

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.cause = cause


class ResponseError(Vx4Error, ValueError):
    # Error class used when we can't interpret the response from the controller
    pass


class MalformedResponse(ResponseError):
    # Response is empty or doesn't have the fields we expect
    pass


class DecodeFailure(ResponseError):
    # The value field of the response isn't valid hexadecimal
    pass


class SettingsError(ValueError):
    # Error class used when the port settings file is missing or invalid
    pass

class FTPError(Exception):
    """Base class for every error raised by the client."""
    pass


class FTPConnectError(FTPError):
    """The control connection could not be opened."""
    pass


class FTPWriteError(FTPError):
    """Writing a command to the control connection failed."""
    pass


class FTPReadError(FTPError):
    """Reading a reply from the control connection failed."""
    pass


class FTPProtocolError(FTPReadError):
    """The control connection closed in the middle of a reply."""
    pass


class MalformedReplyError(FTPError):
    """A reply line does not start with a three digit code."""
    pass


class AddressParseError(FTPError):
    """A passive mode reply does not carry a usable host/port."""
    pass


class DataChannelError(FTPError):
    """Dial, read or write failure on the data connection."""
    pass


class FTPStateError(FTPError):
    """Operation not allowed in the current connection or session state."""
    pass


class CommandInFlightError(FTPStateError):
    """A command was sent before the previous reply had been read."""
    pass


class UnexpectedStatus(FTPError):
    """
    The server answered with a code the operation does not accept.

    The raw ``code`` and ``message`` are kept so callers can branch on
    legitimate alternates (e.g. 550 on a missing file).
    """

    def __init__(self, code: int, message: str, expected=()):
        self.code = code
        self.message = message
        self.expected = tuple(expected)
        super().__init__(f"{code} {message}")

    @classmethod
    def from_reply(cls, reply, expected=()):
        return cls(reply.code, reply.message, expected)

import itertools
import logging
import socket
from typing import Optional

from .errors import (
    CommandInFlightError,
    FTPConnectError,
    FTPProtocolError,
    FTPReadError,
    FTPStateError,
    FTPWriteError,
)
from .parser import Parser, Reply

logger = logging.getLogger(__name__)

CRLF = "\r\n"
ENCODING = "utf-8"
# The sizehint passed to readline() calls
MAXLINE = 8192


class CommandHandle:
    """Ticket for a command whose reply has not been read yet."""

    def __init__(self, id: int, command: str):
        self.id = id
        self.command = command

    def __repr__(self):
        return f"CommandHandle(id={self.id}, command={self.command!r})"


class ControlConnectionManager:
    """
    The persistent FTP control connection.

    Sends CRLF terminated command lines and reads back numeric replies. Only
    one command may be in flight: ``send_command`` hands out a handle that
    must be passed to ``read_reply`` before the next command is sent.
    """

    def __init__(self, host: str, port: int = 21, timeout: Optional[float] = None, parser: Parser = None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.parser = parser or Parser()
        self.socket: Optional[socket.socket] = None
        self.file = None
        self._pending: Optional[CommandHandle] = None
        self._ids = itertools.count(1)
        self._closed = False

    @property
    def connected(self) -> bool:
        return self.socket is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def connect(self) -> Reply:
        """Open the connection and return the server greeting, uninterpreted."""
        if self.socket is not None or self._closed:
            raise FTPStateError("Connection already established or closed.")
        try:
            logger.info("Connecting to %s:%s (timeout=%s)", self.host, self.port, self.timeout)
            self.socket = socket.create_connection((self.host, self.port), self.timeout)
            self.file = self.socket.makefile("rb")
        except OSError as e:
            logger.error("Failed to connect to %s:%s - %s", self.host, self.port, e)
            self.socket = None
            raise FTPConnectError(f"Failed to connect to {self.host}:{self.port} - {e}") from e

        logger.info("Connected to %s:%s", self.host, self.port)
        return self._read()

    def send_command(self, command: str) -> CommandHandle:
        if self.socket is None:
            raise FTPStateError("No connection established.")
        if self._pending is not None:
            raise CommandInFlightError(
                f"Cannot send {command.split(' ', 1)[0]!r}: reply to {self._pending.command!r} not read yet"
            )
        if "\r" in command or "\n" in command:
            raise ValueError("A command must not contain newline characters")

        logger.debug("-> SEND: %s", _mask(command))
        try:
            self.socket.sendall((command + CRLF).encode(ENCODING))
        except OSError as e:
            logger.error("Failed to send %s: %s", _mask(command).split(" ", 1)[0], e)
            raise FTPWriteError(f"Failed to send command: {e}") from e

        self._pending = CommandHandle(next(self._ids), command)
        return self._pending

    def read_reply(self, handle: CommandHandle = None, expected_code: int = None) -> Reply:
        """
        Block until a complete reply is read and return it.

        ``expected_code`` is informational only: the reply is returned
        whatever its code and the caller decides what it means. With no
        ``handle`` an unsolicited reply is read (e.g. the confirmation
        following a data transfer).
        """
        if self.socket is None:
            raise FTPStateError("No connection established.")
        if handle is not None and handle is not self._pending:
            raise FTPStateError(f"{handle!r} is not the command awaiting a reply")

        try:
            reply = self._read()
        finally:
            if handle is not None:
                self._pending = None

        if expected_code is not None and reply.code != expected_code:
            logger.debug("Expected %s, server replied %s", expected_code, reply.code)
        return reply

    def close(self):
        """Release the connection. Calling it again does nothing."""
        if self._closed:
            return
        self._closed = True
        self._pending = None

        file, self.file = self.file, None
        sock, self.socket = self.socket, None
        try:
            if file is not None:
                file.close()
        finally:
            if sock is not None:
                logger.info("Closing connection to %s:%s", self.host, self.port)
                sock.close()

    def _readline(self) -> str:
        try:
            line = self.file.readline(MAXLINE + 1)
        except OSError as e:
            raise FTPReadError(f"Failed to read reply: {e}") from e

        if len(line) > MAXLINE:
            raise FTPProtocolError("Reply line too long")
        if not line:
            raise FTPProtocolError("Connection closed by server")
        if not line.endswith(b"\n"):
            raise FTPProtocolError("Connection closed in the middle of a reply line")
        return line.decode(ENCODING, errors="replace").rstrip("\r\n")

    def _read(self) -> Reply:
        first = self._readline()
        code, _, continued = self.parser.parse_line(first)
        lines = [first]
        while continued:
            line = self._readline()
            lines.append(line)
            continued = not self.parser.is_reply_end(code, line)

        reply = self.parser.parse_lines(lines)
        logger.debug("<- RECV: %s", reply)
        return reply


def _mask(command: str) -> str:
    if command[:5].upper() == "PASS ":
        return "PASS " + "*" * len(command[5:])
    return command

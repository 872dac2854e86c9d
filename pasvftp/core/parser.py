import logging
import re
from typing import Iterable, NamedTuple, Tuple

from .errors import AddressParseError, MalformedReplyError
from .status import RESPONSE_TYPES

logger = logging.getLogger(__name__)

# Six comma separated 1-3 digit numbers, not part of a longer digit run
_PASV_RE = re.compile(r"(?<!\d)" + r",".join([r"(\d{1,3})"] * 6) + r"(?!\d)")


class Reply(NamedTuple):
    """A parsed server reply: three digit code plus message text."""

    code: int
    message: str

    @property
    def type(self) -> str:
        return RESPONSE_TYPES.get(f"{self.code:03d}"[0], 'unknown')

    def __str__(self):
        return f"{self.code} {self.message}"


class PassiveEndpoint(NamedTuple):
    """Host/port advertised by a 227 reply; usable as a socket address."""

    host: str
    port: int


class Parser:
    def parse_line(self, line: str) -> Tuple[int, str, bool]:
        """
        Split one reply line into ``(code, text, continued)``.

        ``continued`` is True for ``ddd-text`` lines, which open or continue
        a multi-line reply.
        """
        line = line.rstrip("\r\n")
        code = line[:3]

        if len(code) != 3 or not code.isdigit():
            logger.error("Invalid FTP reply line: %r", line)
            raise MalformedReplyError(f"Invalid reply line: {line!r}")

        if len(line) == 3:
            return int(code), "", False

        separator = line[3]
        if separator not in (" ", "-"):
            logger.error("Invalid FTP reply separator: %r", line)
            raise MalformedReplyError(f"Invalid reply line: {line!r}")

        return int(code), line[4:], separator == "-"

    def is_reply_end(self, code: int, line: str) -> bool:
        """True if ``line`` is the ``ddd text`` line closing a multi-line reply."""
        line = line.rstrip("\r\n")
        prefix = f"{code:03d}"
        return line == prefix or line.startswith(prefix + " ")

    def continuation_text(self, code: int, line: str) -> str:
        """Text of an intermediate line, without its ``ddd-`` prefix if any."""
        line = line.rstrip("\r\n")
        prefix = f"{code:03d}"
        if line.startswith(prefix + "-") or line.startswith(prefix + " "):
            return line[4:]
        return line

    def parse_lines(self, lines: Iterable[str]) -> Reply:
        lines = iter(lines)
        try:
            first = next(lines)
        except StopIteration:
            raise MalformedReplyError("Empty reply") from None

        code, text, continued = self.parse_line(first)
        parts = [text]

        while continued:
            try:
                line = next(lines)
            except StopIteration:
                raise MalformedReplyError(f"Unterminated multi-line reply {code}") from None

            parts.append(self.continuation_text(code, line))
            continued = not self.is_reply_end(code, line)

        reply = Reply(code, "\n".join(parts))
        logger.debug("Parsed reply: code=%s, type=%s, message=%s", reply.code, reply.type, reply.message[:50])
        return reply

    def parse_data(self, data: str) -> Reply:
        """Parse a complete single or multi-line reply."""
        return self.parse_lines(data.strip("\r\n").splitlines())

    def parse_pasv_response(self, message: str) -> PassiveEndpoint:
        """Extract the data endpoint from an 'Entering Passive Mode (h1,h2,h3,h4,p1,p2)' text."""
        match = _PASV_RE.search(message)
        if match is None:
            logger.error("Failed to parse PASV response: %s", message)
            raise AddressParseError(f"No passive address in reply: {message!r}")

        numbers = [int(n) for n in match.groups()]
        if any(n > 255 for n in numbers):
            logger.error("PASV address component out of range: %s", message)
            raise AddressParseError(f"Passive address component out of range: {match.group(0)}")

        host = ".".join(str(n) for n in numbers[:4])
        port = (numbers[4] << 8) + numbers[5]
        logger.debug("PASV parsed: %s:%s", host, port)
        return PassiveEndpoint(host, port)

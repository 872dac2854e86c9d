import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from .connection import ControlConnectionManager
from .data_connection import DataConnectionManager
from .errors import FTPError, FTPReadError, FTPStateError, FTPWriteError, UnexpectedStatus
from .parser import Parser, Reply
from .status import ReplyCode, TransferMode

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 500


class SessionState:
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    CLOSED = "closed"


class FTPSession:
    """
    A logged-in conversation with one FTP server.

    Every operation is synchronous end to end, so the control connection
    never has more than one command in flight. Operations return the
    server's message (or the transferred payload) and raise an ``FTPError``
    subclass on failure; an ``UnexpectedStatus`` keeps the reply code and
    message for the caller to inspect.

    Example::

        session = FTPSession("ftp.example.com")
        session.connect()
        session.authenticate("anonymous", "guest@")
        print(session.list())
        session.quit()
    """

    def __init__(self, host: str, port: int = 21, timeout: Optional[float] = None,
                 connection: ControlConnectionManager = None, parser: Parser = None):
        self.parser = parser or Parser()
        self.conn = connection or ControlConnectionManager(host, port, timeout, self.parser)
        self.timeout = timeout
        self.state = SessionState.UNAUTHENTICATED
        self.welcome: Optional[str] = None
        # history as list of dicts: {"time":..., "command":..., "reply":..., "error":bool}
        self.history = []

    def __enter__(self):
        return self

    def __exit__(self, *args):
        if self.state != SessionState.CLOSED:
            try:
                self.quit()
            except FTPError as e:
                logger.warning("QUIT failed while leaving session: %s", e)

    @property
    def host(self) -> str:
        return self.conn.host

    @property
    def port(self) -> int:
        return self.conn.port

    @property
    def closed(self) -> bool:
        return self.state == SessionState.CLOSED

    # ---------------- connection ----------------
    def connect(self) -> str:
        """Open the control connection and return the server greeting."""
        try:
            reply = self.conn.connect()
            # 120: service ready in nnn minutes, the real greeting follows
            while reply.code == ReplyCode.SERVICE_READY_IN:
                logger.info("Server not ready yet: %s", reply.message)
                reply = self.conn.read_reply(None, ReplyCode.SERVICE_READY)
        except FTPError:
            self.disconnect()
            raise

        self._record(f"CONNECT {self.host}:{self.port}", reply)
        if reply.code != ReplyCode.SERVICE_READY:
            self.disconnect()
            raise UnexpectedStatus.from_reply(reply, (ReplyCode.SERVICE_READY,))

        self.welcome = reply.message
        return reply.message

    def authenticate(self, username: str, password: str = "", account: str = "") -> str:
        """
        Log in. A server that grants access on USER alone (230) is not sent
        PASS; ACCT is only sent when the server asks for it (332).
        """
        self._require_open()
        self.state = SessionState.AUTHENTICATING
        try:
            reply = self._execute(f"USER {username}")
            if reply.code == ReplyCode.NEED_PASSWORD:
                reply = self._execute(f"PASS {password}")
            if reply.code == ReplyCode.NEED_ACCOUNT and account:
                reply = self._execute(f"ACCT {account}")
            self._expect(reply, ReplyCode.LOGIN_DONE)
        except FTPError:
            if not self.closed:
                self.state = SessionState.UNAUTHENTICATED
            raise

        self.state = SessionState.READY
        logger.info("Logged in to %s:%s as %s", self.host, self.port, username)
        return reply.message

    def quit(self) -> str:
        """Send QUIT and close the connection, whatever the server answers."""
        try:
            reply = self._execute("QUIT")
        finally:
            self.disconnect()
        self._expect(reply, (ReplyCode.CLOSING_CONTROL,))
        return reply.message

    def disconnect(self):
        """Close the control connection. Safe to call more than once."""
        if self.state != SessionState.CLOSED:
            logger.info("Disconnecting from %s:%s", self.host, self.port)
        self.state = SessionState.CLOSED
        self.conn.close()

    # ---------------- simple commands ----------------
    def set_mode(self, mode: str) -> str:
        if mode not in TransferMode.ALL:
            raise ValueError(f"Unknown transfer mode: {mode!r}")
        return self._simple(f"TYPE {mode}", ReplyCode.COMMAND_OK)

    def delete(self, filename: str) -> str:
        return self._simple(f"DELE {filename}", ReplyCode.FILE_ACTION_OK)

    def make_directory(self, path: str) -> str:
        return self._simple(f"MKD {path}", ReplyCode.PATH_CREATED)

    def remove_directory(self, path: str) -> str:
        """Server implementations may require the directory to be empty."""
        return self._simple(f"RMD {path}", ReplyCode.FILE_ACTION_OK)

    def get_current_directory(self) -> str:
        return self._simple("PWD", ReplyCode.PATH_CREATED)

    def change_directory(self, path: str) -> str:
        return self._simple(f"CWD {path}", ReplyCode.FILE_ACTION_OK)

    def parent_directory(self) -> str:
        return self._simple("CDUP", ReplyCode.COMMAND_OK, ReplyCode.FILE_ACTION_OK)

    def rename(self, from_name: str, to_name: str) -> str:
        self._simple(f"RNFR {from_name}", ReplyCode.PENDING_FURTHER_INFO)
        return self._simple(f"RNTO {to_name}", ReplyCode.FILE_ACTION_OK)

    def system(self) -> str:
        return self._simple("SYST", ReplyCode.SYSTEM_TYPE)

    def noop(self) -> str:
        return self._simple("NOOP", ReplyCode.COMMAND_OK)

    def help(self, topic: str = None) -> str:
        command = f"HELP {topic}" if topic else "HELP"
        return self._simple(command, ReplyCode.HELP, ReplyCode.SYSTEM_STATUS, ready=False)

    def stat(self, path: str = None) -> str:
        command = f"STAT {path}" if path else "STAT"
        return self._simple(command, ReplyCode.SYSTEM_STATUS, ReplyCode.DIRECTORY_STATUS, ReplyCode.FILE_STATUS)

    # ---------------- data transfers ----------------
    def list(self, path: str = None) -> str:
        """Raw LIST output of ``path`` (default: current directory)."""
        command = f"LIST {path}" if path else "LIST"
        return self._transfer(command).decode("utf-8", errors="replace")

    def name_list(self, path: str = None) -> str:
        command = f"NLST {path}" if path else "NLST"
        return self._transfer(command).decode("utf-8", errors="replace")

    def retrieve(self, filename: str) -> bytes:
        return self._transfer(f"RETR {filename}")

    def store(self, filename: str, contents: bytes) -> int:
        """Upload ``contents`` as ``filename``; returns the number of bytes sent."""
        return self._transfer(f"STOR {filename}", contents)

    def _passive(self):
        reply = self._simple_reply("PASV", ReplyCode.ENTERING_PASSIVE)
        return self.parser.parse_pasv_response(reply.message)

    def _transfer(self, command: str, payload: bytes = None):
        """
        Run one data transfer.

        1. PASV and parse the endpoint.
        2. Dial it on a background thread and wait for the dial result.
        3. Send ``command``; give the go only if the server starts the
           transfer, otherwise abort the data connection.
        4. Collect the data result and the final reply; both must succeed.
        """
        self._require_ready()
        endpoint = self._passive()

        data_conn = DataConnectionManager(endpoint, self.timeout)
        if payload is None:
            data_conn.start_receive()
        else:
            data_conn.start_send(payload)

        # The trigger is never sent if the data connection could not be opened
        data_conn.wait_dialed()

        # Any failure here leaves a dialed worker waiting for go/no-go
        try:
            reply = self._execute(command)
        except Exception as e:
            data_conn.abort(e)
            raise

        if reply.code not in ReplyCode.TRANSFER_STARTING:
            error = UnexpectedStatus.from_reply(reply, ReplyCode.TRANSFER_STARTING)
            data_conn.abort(error)
            raise error

        data_conn.go()
        data_error = None
        try:
            result = data_conn.wait_result()
        except FTPError as e:
            data_error = e

        final = self._guarded(lambda: self.conn.read_reply(None, ReplyCode.TRANSFER_COMPLETE))
        if data_error is not None:
            size = None
        elif payload is None:
            size = len(result)
        else:
            size = result
        self._record(f"{command} (complete)", final, size=size)

        if data_error is not None:
            raise data_error
        self._expect(final, ReplyCode.TRANSFER_DONE)
        return result

    # ---------------- helpers ----------------
    def _simple(self, command: str, *expected: int, ready: bool = True) -> str:
        return self._simple_reply(command, *expected, ready=ready).message

    def _simple_reply(self, command: str, *expected: int, ready: bool = True) -> Reply:
        if ready:
            self._require_ready()
        else:
            self._require_open()
        reply = self._execute(command)
        self._expect(reply, expected)
        return reply

    def _execute(self, command: str) -> Reply:
        """Send one command and read its reply, whatever the code."""
        self._require_open()
        handle = self._guarded(lambda: self.conn.send_command(command))
        reply = self._guarded(lambda: self.conn.read_reply(handle))
        self._record(command, reply)
        return reply

    def _expect(self, reply: Reply, expected: Sequence[int]):
        if reply.code not in expected:
            logger.warning("Unexpected reply %s (expected %s)", reply, ", ".join(map(str, expected)))
            raise UnexpectedStatus.from_reply(reply, expected)

    def _guarded(self, operation):
        """Run a control channel call; an I/O failure closes the session."""
        try:
            return operation()
        except (FTPWriteError, FTPReadError) as e:
            logger.error("Control connection to %s:%s lost: %s", self.host, self.port, e)
            self.disconnect()
            raise

    def _require_open(self):
        if self.state == SessionState.CLOSED or not self.conn.connected:
            raise FTPStateError("Not connected")

    def _require_ready(self):
        self._require_open()
        if self.state != SessionState.READY:
            raise FTPStateError("Not logged in")

    def _record(self, command: str, reply: Reply, **extra):
        if command[:5].upper() == "PASS ":
            command = "PASS ****"
        entry = {
            "time": datetime.now(timezone.utc),
            "command": command,
            "reply": reply,
            "error": reply.type in ("transient", "error"),
        }
        entry.update({k: v for k, v in extra.items() if v is not None})
        self.history.append(entry)
        del self.history[:-HISTORY_LIMIT]

    # Helpers for UI
    def get_history(self):
        """Return a copy of the history list."""
        return list(self.history)

    def clear_history(self):
        self.history.clear()

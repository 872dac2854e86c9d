"""Shared fixtures: an in-process FTP server good enough to drive the client."""

import logging
import socket
import struct
import threading

import pytest

logger = logging.getLogger(__name__)

HOST = "127.0.0.1"


def free_port() -> int:
    """A port nothing listens on (bound then released)."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((HOST, 0))
        return s.getsockname()[1]


def pasv_line(port: int, host: str = HOST) -> str:
    return f"227 Entering Passive Mode ({host.replace('.', ',')},{port >> 8},{port & 255})."


class FakeFTPServer:
    """
    Single-client FTP server running on a thread.

    Keeps files in memory, records every command line it receives and
    serves passive data connections on 127.0.0.1.
    """

    def __init__(self, files=None, listing=b"", login_on_user=False, password=None,
                 pasv_port=0, pasv_reply=None, quit_reply="221 Goodbye.", drop_on=None,
                 greeting="220 Fake FTP server ready.", final_reply="226 Transfer complete.",
                 reset_data=False):
        self.files = dict(files or {})
        self.dirs = {"/", "/pub"}
        self.cwd = "/"
        self.listing = listing
        self.login_on_user = login_on_user
        self.password = password
        self.pasv_port = pasv_port
        self.pasv_reply = pasv_reply
        self.quit_reply = quit_reply
        self.drop_on = drop_on
        self.greeting = greeting
        self.final_reply = final_reply
        self.reset_data = reset_data
        self.received = []
        self.rename_from = None
        self.data_listener = None

        self.listener = socket.create_server((HOST, 0))
        self.host, self.port = self.listener.getsockname()[:2]
        self.thread = threading.Thread(target=self._serve, name="fake-ftp", daemon=True)

    def start(self):
        self.thread.start()
        return self

    def stop(self):
        try:
            # wakes a thread blocked in accept()
            self.listener.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.listener.close()
        self._close_data_listener()
        self.thread.join(5)

    @property
    def verbs(self):
        return [line.split(" ", 1)[0].upper() for line in self.received]

    # ---------------- plumbing ----------------
    def _serve(self):
        try:
            conn, _ = self.listener.accept()
        except OSError:
            return
        self.conn = conn
        with conn, conn.makefile("rb") as rfile:
            try:
                self._send(self.greeting)
                for raw in rfile:
                    line = raw.decode("utf-8").rstrip("\r\n")
                    self.received.append(line)
                    verb, _, arg = line.partition(" ")
                    verb = verb.upper()
                    if verb == self.drop_on:
                        break
                    handler = getattr(self, f"ftp_{verb}", None)
                    if handler is None:
                        self._send("502 Command not implemented.")
                        continue
                    if handler(arg) is False:
                        break
            except OSError as e:
                logger.debug("fake server connection ended: %s", e)
        self._close_data_listener()

    def _send(self, text: str):
        self.conn.sendall(text.encode("utf-8") + b"\r\n")

    def _close_data_listener(self):
        if self.data_listener is not None:
            self.data_listener.close()
            self.data_listener = None

    def _accept_data(self, preliminary: str):
        if self.data_listener is None:
            self._send("425 Use PASV first.")
            return None
        self._send(preliminary)
        data_conn, _ = self.data_listener.accept()
        self._close_data_listener()
        return data_conn

    def _send_data(self, preliminary: str, payload: bytes):
        data_conn = self._accept_data(preliminary)
        if data_conn is None:
            return
        if self.reset_data:
            # zero linger: close() sends RST instead of FIN
            data_conn.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
            data_conn.close()
            self._send("426 Connection closed; transfer aborted.")
            return
        with data_conn:
            data_conn.sendall(payload)
        self._send(self.final_reply)

    def _reject(self, reply: str):
        self._close_data_listener()
        self._send(reply)

    # ---------------- commands ----------------
    def ftp_USER(self, arg):
        self.user = arg
        if self.login_on_user:
            self._send("230 Login successful.")
        else:
            self._send("331 Please specify the password.")

    def ftp_PASS(self, arg):
        if self.password is not None and arg != self.password:
            self._send("530 Login incorrect.")
        else:
            self._send("230 Login successful.")

    def ftp_TYPE(self, arg):
        if arg in ("A", "I"):
            self._send(f"200 Switching to {'Binary' if arg == 'I' else 'ASCII'} mode.")
        else:
            self._send("504 Command not implemented for that parameter.")

    def ftp_PASV(self, arg):
        if self.pasv_reply is not None:
            self._send(self.pasv_reply)
            return
        self._close_data_listener()
        self.data_listener = socket.create_server((HOST, self.pasv_port))
        self._send(pasv_line(self.data_listener.getsockname()[1]))

    def ftp_LIST(self, arg):
        self._send_data("150 Here comes the directory listing.", self.listing)

    def ftp_NLST(self, arg):
        self._send_data("150 Here comes the directory listing.", "\r\n".join(sorted(self.files)).encode())

    def ftp_RETR(self, arg):
        if arg not in self.files:
            self._reject("550 Failed to open file.")
            return
        self._send_data(f"150 Opening BINARY mode data connection for {arg}.", self.files[arg])

    def ftp_STOR(self, arg):
        data_conn = self._accept_data("150 Ok to send data.")
        if data_conn is None:
            return
        chunks = []
        with data_conn:
            while chunk := data_conn.recv(4096):
                chunks.append(chunk)
        self.files[arg] = b"".join(chunks)
        self._send("226 Transfer complete.")

    def ftp_DELE(self, arg):
        if self.files.pop(arg, None) is None:
            self._send("550 Delete operation failed.")
        else:
            self._send("250 Delete operation successful.")

    def ftp_MKD(self, arg):
        self.dirs.add(arg)
        self._send(f'257 "{arg}" created')

    def ftp_RMD(self, arg):
        if arg in self.dirs:
            self.dirs.discard(arg)
            self._send("250 Remove directory operation successful.")
        else:
            self._send("550 Remove directory operation failed.")

    def ftp_PWD(self, arg):
        self._send(f'257 "{self.cwd}" is the current directory')

    def ftp_CWD(self, arg):
        if arg in self.dirs:
            self.cwd = arg
            self._send("250 Directory successfully changed.")
        else:
            self._send("550 Failed to change directory.")

    def ftp_CDUP(self, arg):
        self.cwd = "/"
        self._send("250 Directory successfully changed.")

    def ftp_RNFR(self, arg):
        if arg in self.files:
            self.rename_from = arg
            self._send("350 Ready for RNTO.")
        else:
            self._send("550 RNFR command failed.")

    def ftp_RNTO(self, arg):
        self.files[arg] = self.files.pop(self.rename_from)
        self.rename_from = None
        self._send("250 Rename successful.")

    def ftp_HELP(self, arg):
        self._send("214-The following commands are recognized.")
        self._send(" CDUP CWD DELE HELP LIST MKD NLST NOOP PASS PASV PWD")
        self._send(" QUIT RETR RMD RNFR RNTO STAT STOR SYST TYPE USER")
        self._send("214 Help OK.")

    def ftp_STAT(self, arg):
        self._send("211-FTP server status:")
        self._send("211-     Connected to 127.0.0.1")
        self._send("211 End of status")

    def ftp_SYST(self, arg):
        self._send("215 UNIX Type: L8")

    def ftp_NOOP(self, arg):
        self._send("200 NOOP ok.")

    def ftp_QUIT(self, arg):
        self._send(self.quit_reply)
        return False


@pytest.fixture
def ftp_server():
    """Factory: ``ftp_server(**options)`` starts a FakeFTPServer."""
    servers = []

    def factory(**kwargs):
        server = FakeFTPServer(**kwargs).start()
        servers.append(server)
        return server

    yield factory
    for server in servers:
        server.stop()


@pytest.fixture
def session_for(ftp_server):
    """Factory: start a server and return ``(server, logged-in FTPSession)``."""
    from pasvftp.core import FTPSession

    sessions = []

    def factory(**kwargs):
        server = ftp_server(**kwargs)
        session = FTPSession(server.host, server.port, timeout=5)
        session.connect()
        session.authenticate("joe", "secret")
        sessions.append(session)
        return server, session

    yield factory
    for session in sessions:
        session.disconnect()


class RawServer:
    """Accepts one connection, sends ``payload`` and then closes."""

    def __init__(self, payload: bytes, linger: bool = False):
        self.payload = payload
        self.linger = linger
        self.received = b""
        self.listener = socket.create_server((HOST, 0))
        self.host, self.port = self.listener.getsockname()[:2]
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self):
        try:
            conn, _ = self.listener.accept()
        except OSError:
            return
        with conn:
            conn.sendall(self.payload)
            if self.linger:
                conn.settimeout(5)
                try:
                    while chunk := conn.recv(4096):
                        self.received += chunk
                except OSError:
                    pass

    def stop(self):
        try:
            # wakes a thread blocked in accept()
            self.listener.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.listener.close()
        self.thread.join(5)


@pytest.fixture
def raw_server():
    servers = []

    def factory(payload: bytes, linger: bool = False):
        server = RawServer(payload, linger)
        servers.append(server)
        return server

    yield factory
    for server in servers:
        server.stop()

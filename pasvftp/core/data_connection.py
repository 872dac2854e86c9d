import logging
import queue
import socket
import threading
from typing import NamedTuple, Optional

from .errors import DataChannelError, FTPStateError
from .parser import PassiveEndpoint

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096


class Signal:
    """Kinds of message carried by a DataExchange."""

    CONNECTED = "connected"
    GO = "go"
    NO_GO = "no-go"
    PAYLOAD = "payload"
    ERROR = "error"
    CLOSED = "closed"


class ExchangeMessage(NamedTuple):
    kind: str
    value: object = None


_CLOSED = ExchangeMessage(Signal.CLOSED)


def _chain(error: Exception, cause: BaseException) -> Exception:
    error.__cause__ = cause
    return error


class DataExchange:
    """
    Single-use channel between the session and one data transfer thread.

    The order is fixed: the worker posts its dial result (``connected`` or
    ``error``), the caller answers ``go`` or ``no-go``, the worker posts its
    final ``payload`` or ``error`` and closes the exchange. Once closed, the
    exchange is never reused.
    """

    def __init__(self):
        self._to_caller = queue.Queue()
        self._to_worker = queue.Queue(maxsize=1)
        self._lock = threading.Lock()
        self._closed = False
        self._drained = False
        self._dial_consumed = False
        self._decided = False
        self._decision_seen = False

    @property
    def closed(self) -> bool:
        return self._closed

    # ---------------- worker side ----------------
    def post(self, kind: str, value=None):
        with self._lock:
            if self._closed:
                raise FTPStateError("Data exchange already closed")
            if kind == Signal.PAYLOAD and not self._decision_seen:
                raise FTPStateError("Final result posted before the go/no-go decision")
        self._to_caller.put(ExchangeMessage(kind, value))

    def wait_for_decision(self) -> ExchangeMessage:
        decision = self._to_worker.get()
        with self._lock:
            self._decision_seen = True
        return decision

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._to_caller.put(_CLOSED)

    # ---------------- caller side ----------------
    def receive(self) -> ExchangeMessage:
        """Next message from the worker; ``closed`` forever once drained."""
        if self._drained:
            return _CLOSED

        message = self._to_caller.get()
        if message.kind == Signal.CLOSED:
            self._drained = True
        elif not self._dial_consumed:
            self._dial_consumed = True
        return message

    def decide(self, go: bool, error: Exception = None):
        with self._lock:
            if not self._dial_consumed:
                raise FTPStateError("Go/no-go sent before the dial result was read")
            if self._decided:
                raise FTPStateError("Go/no-go already sent")
            self._decided = True

        if go:
            self._to_worker.put(ExchangeMessage(Signal.GO))
        else:
            self._to_worker.put(ExchangeMessage(Signal.NO_GO, error))


class DataConnectionManager:
    """
    Runs one passive-mode data transfer on a background thread.

    The worker dials ``endpoint`` and reports over ``exchange``; the bytes only
    move after the caller has seen the server accept the transfer command and
    called ``go()``. ``abort()`` closes the socket without transferring.
    """

    def __init__(self, endpoint, timeout: Optional[float] = None, chunk_size: int = CHUNK_SIZE):
        self.endpoint = PassiveEndpoint(*endpoint)
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.exchange = DataExchange()
        self.thread: Optional[threading.Thread] = None

    def start_receive(self) -> threading.Thread:
        """Start a transfer that reads until the server closes the connection."""
        return self._start(self._receive)

    def start_send(self, payload: bytes) -> threading.Thread:
        """Start a transfer that writes ``payload`` and reports the byte count."""
        payload = bytes(payload)
        return self._start(lambda sock: self._send(sock, payload))

    # ---------------- caller helpers ----------------
    def wait_dialed(self):
        """Block until the worker is connected; raise its dial error otherwise."""
        message = self.exchange.receive()
        if message.kind == Signal.ERROR:
            self.join()
            raise message.value
        if message.kind != Signal.CONNECTED:
            raise FTPStateError(f"Unexpected data channel message: {message.kind}")

    def go(self):
        self.exchange.decide(True)

    def abort(self, error: Exception = None) -> Optional[Exception]:
        """Send no-go, wait for the worker to close, return its abort error."""
        self.exchange.decide(False, error)
        reported = None
        while True:
            message = self.exchange.receive()
            if message.kind == Signal.CLOSED:
                break
            if message.kind == Signal.ERROR:
                reported = message.value
        self.join()
        return reported

    def wait_result(self):
        """Final payload (bytes received or count sent); raises the worker's error."""
        message = self.exchange.receive()
        while self.exchange.receive().kind != Signal.CLOSED:
            pass
        self.join()

        if message.kind == Signal.ERROR:
            raise message.value
        if message.kind != Signal.PAYLOAD:
            raise DataChannelError("Data connection closed without a result")
        return message.value

    def join(self, timeout: Optional[float] = None):
        if self.thread is not None:
            self.thread.join(timeout)

    # ---------------- worker ----------------
    def _start(self, transfer) -> threading.Thread:
        if self.thread is not None:
            raise FTPStateError("Data connection already started")

        host, port = self.endpoint
        self.thread = threading.Thread(
            target=self._run, args=(transfer,), name=f"ftp-data-{host}:{port}", daemon=True
        )
        self.thread.start()
        return self.thread

    def _dial(self) -> socket.socket:
        host, port = self.endpoint
        try:
            logger.debug("[DATA] Connecting to %s:%s", host, port)
            sock = socket.create_connection((host, port), self.timeout)
        except OSError as e:
            logger.warning("[DATA] Failed to connect to %s:%s - %s", host, port, e)
            raise DataChannelError(f"Failed to open data connection to {host}:{port} - {e}") from e

        logger.debug("[DATA] Connected to %s:%s", host, port)
        return sock

    def _run(self, transfer):
        try:
            sock = self._dial()
        except DataChannelError as e:
            self.exchange.post(Signal.ERROR, e)
            self.exchange.close()
            return

        try:
            self.exchange.post(Signal.CONNECTED)
            decision = self.exchange.wait_for_decision()

            if decision.kind != Signal.GO:
                logger.info("[DATA] Transfer aborted before start: %s", decision.value)
                sock.close()
                error = DataChannelError(f"Data transfer aborted: {decision.value}")
                if isinstance(decision.value, BaseException):
                    _chain(error, decision.value)
                self.exchange.post(Signal.ERROR, error)
                return

            try:
                result = transfer(sock)
            except OSError as e:
                logger.warning("[DATA] Transfer failed: %s", e)
                outcome = ExchangeMessage(Signal.ERROR, _chain(DataChannelError(f"Data transfer failed: {e}"), e))
            else:
                outcome = ExchangeMessage(Signal.PAYLOAD, result)

            sock.close()
            self.exchange.post(*outcome)
        finally:
            sock.close()
            self.exchange.close()
            logger.debug("[DATA] Disconnected from %s:%s", *self.endpoint)

    def _receive(self, sock: socket.socket) -> bytes:
        chunks = []
        while chunk := sock.recv(self.chunk_size):
            chunks.append(chunk)
        data = b"".join(chunks)
        logger.debug("[DATA] Received %d bytes", len(data))
        return data

    def _send(self, sock: socket.socket, payload: bytes) -> int:
        sock.sendall(payload)
        logger.debug("[DATA] Sent %d bytes", len(payload))
        return len(payload)

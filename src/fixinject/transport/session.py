"""Session layer: logon, logout, and the outbound sequence counter.

A :class:`Session` is the only writer-side owner of the connection. Any
number of threads may call :meth:`Session.send`; the write lock makes
sequence number assignment and the socket write one atomic step, so the
sequence numbers on the wire are strictly increasing with no gaps.
"""

from __future__ import annotations

import datetime
import enum
import logging
import queue
import threading
import time
from typing import Callable, Optional

from ..config import ConnectionConfig
from ..protocol import codec, fields
from ..protocol.message import Message
from .base import ConnectError, SendError, Transport
from .tcp import TcpTransport

logger = logging.getLogger(__name__)

_stop = object()


class State(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    LOGGED_ON = "logged on"
    LOGGING_OUT = "logging out"


def timestamp(when: Optional[datetime.datetime] = None) -> str:
    """UTC timestamp in the SendingTime (52) format, millisecond precision."""
    if when is None:
        when = datetime.datetime.now(datetime.timezone.utc)
    return when.strftime("%Y%m%d-%H:%M:%S.") + "%03d" % (when.microsecond // 1000)


class Session:
    """One logical FIX session over one transport."""

    def __init__(self, config: ConnectionConfig, transport: Optional[Transport] = None):
        self.config = config

        if transport is None:
            transport = TcpTransport(config.host, config.port, write_timeout=config.socket_timeout)

        self.transport = transport
        self.seq_num = 1
        self.state = State.DISCONNECTED
        self.last_sent = time.monotonic()

        self._lock = threading.Lock()
        self._logon_event = threading.Event()

        self._replies: queue.SimpleQueue = queue.SimpleQueue()
        self._replier: Optional[threading.Thread] = None

    def __repr__(self) -> str:
        return (
            f"Session({self.config.sender_comp_id}->{self.config.target_comp_id}, "
            f"{self.state.value}, next seq {self.seq_num})"
        )

    @property
    def connected(self) -> bool:
        return self.state is State.LOGGED_ON

    # --- session establishment ---

    def connect(self) -> None:
        """Open the transport and send Logon.

        The session counts as logged on once the Logon frame is written;
        see :meth:`wait_logon` for the stricter alternative.
        """
        config = self.config

        with self._lock:
            if self.state is not State.DISCONNECTED:
                raise ConnectError(f"session is {self.state.value}")
            self.state = State.CONNECTING
            self._logon_event.clear()

        logger.info("connecting to %s:%d as %s", config.host, config.port, config.sender_comp_id)

        try:
            self.transport.open(timeout=config.logon_timeout)
        except OSError as e:
            self.state = State.DISCONNECTED
            raise ConnectError(f"cannot connect to {config.host}:{config.port}: {e}") from e

        if config.reset_on_logon:
            self.seq_num = 1

        try:
            with self._lock:
                self._transmit(self._logon_message())
        except codec.ProtocolError:
            self._abandon()
            raise
        except OSError as e:
            self._abandon()
            raise ConnectError(f"logon to {config.host}:{config.port} failed: {e}") from e

        self.state = State.LOGGED_ON
        logger.info("logged on to %s:%d", config.host, config.port)

    def wait_logon(self, timeout: Optional[float] = None) -> bool:
        """Block until the counterparty answers our Logon with its own."""
        return self._logon_event.wait(timeout)

    def disconnect(self, reason: Optional[str] = None) -> None:
        """Send Logout if possible, then close. Always ends disconnected."""
        with self._lock:
            logged_on = self.state is State.LOGGED_ON
            self.state = State.LOGGING_OUT

            if logged_on:
                logout = Message([(fields.MSG_TYPE, fields.LOGOUT)])
                if reason:
                    logout.set(fields.TEXT, reason)
                try:
                    self._transmit(logout)
                except (OSError, codec.ProtocolError) as e:
                    logger.warning("logout not sent: %s", e)

            self.transport.close()
            self.state = State.DISCONNECTED

        self._stop_replier()
        logger.info("disconnected from %s:%d", self.config.host, self.config.port)

    def lost(self, reason: str) -> None:
        """The reader observed the connection fail.

        Does not take the write lock; a writer may be blocked inside the
        transport while holding it.
        """
        if self.state is not State.DISCONNECTED:
            logger.error("connection to %s:%d lost: %s", self.config.host, self.config.port, reason)
        self.state = State.DISCONNECTED

    # --- outbound ---

    def send(
        self, message: Message, on_assign: Optional[Callable[[int], None]] = None
    ) -> Message:
        """Stamp, encode and write *message*; return the stamped copy.

        A failed write still consumes its sequence number. An encoding
        failure raises :class:`codec.ProtocolError` and consumes nothing.
        *on_assign*, if given, is called with the sequence number under the
        write lock, after encoding and before the write.
        """
        with self._lock:
            if self.state is not State.LOGGED_ON:
                raise SendError(f"session is {self.state.value}")

            try:
                return self._transmit(message, on_assign)
            except OSError as e:
                seq_num = self.seq_num - 1
                raise SendError(f"write of seq {seq_num} failed: {e}", seq_num) from e

    def heartbeat(self, test_req_id: Optional[str] = None) -> Message:
        heartbeat = Message([(fields.MSG_TYPE, fields.HEARTBEAT)])
        if test_req_id is not None:
            heartbeat.set(fields.TEST_REQ_ID, test_req_id)
        return self.send(heartbeat)

    def _transmit(
        self, message: Message, on_assign: Optional[Callable[[int], None]] = None
    ) -> Message:
        """Caller holds the write lock."""
        stamped = self._stamp(message)
        frame = codec.encode(stamped)

        seq_num = self.seq_num
        self.seq_num += 1
        if on_assign is not None:
            on_assign(seq_num)
        self.transport.write(frame)
        self.last_sent = time.monotonic()

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("sent %s", stamped.text())

        return stamped

    def _stamp(self, message: Message) -> Message:
        config = self.config
        stamped = message.copy()
        stamped.set(fields.BEGIN_STRING, config.begin_string)
        stamped.set(fields.SENDER_COMP_ID, config.sender_comp_id)
        stamped.set(fields.TARGET_COMP_ID, config.target_comp_id)
        stamped.set(fields.MSG_SEQ_NUM, self.seq_num)
        stamped.set(fields.SENDING_TIME, timestamp())
        return stamped

    def _logon_message(self) -> Message:
        config = self.config
        logon = Message([
            (fields.MSG_TYPE, fields.LOGON),
            (fields.ENCRYPT_METHOD, 0),
            (fields.HEARTBT_INT, int(config.heartbeat_interval or 0)),
        ])

        if config.reset_on_logon:
            logon.set(fields.RESET_SEQ_NUM_FLAG, "Y")
        if config.username:
            logon.set(fields.USERNAME, config.username)
        if config.password:
            logon.set(fields.PASSWORD, config.password)

        return logon

    def _abandon(self) -> None:
        self.transport.close()
        self.state = State.DISCONNECTED

    # --- inbound session administration ---

    def handle_admin(self, message: Message) -> bool:
        """React to an unsolicited session-level message from the reader.

        Returns True if *message* was a session administration message.
        """
        msg_type = message.msg_type

        if msg_type == fields.LOGON:
            logger.info("logon acknowledged by %s", message.get(fields.SENDER_COMP_ID))
            self._logon_event.set()
            return True

        if msg_type == fields.HEARTBEAT:
            return True

        if msg_type == fields.TEST_REQUEST:
            # Answered off the reader thread; a writer may hold the lock.
            replier = self._replier
            if replier is None or not replier.is_alive():
                replier = threading.Thread(target=self._reply, name="fixinject-replier")
                replier.daemon = True
                replier.start()
                self._replier = replier

            self._replies.put(message.get(fields.TEST_REQ_ID))
            return True

        if msg_type == fields.LOGOUT:
            logger.warning("counterparty logout: %s", message.get(fields.TEXT, "no reason given"))
            if self.state is State.LOGGED_ON:
                self.state = State.LOGGING_OUT
            return True

        return False

    def _reply(self) -> None:
        """Body of the replier thread: answer queued TestRequests in order."""
        while True:
            test_req_id = self._replies.get()
            if test_req_id is _stop:
                break
            self._answer(test_req_id)

    def _stop_replier(self) -> None:
        replier = self._replier
        if replier is None:
            return

        self._replier = None
        self._replies.put(_stop)
        replier.join(self.config.socket_timeout)

    def _answer(self, test_req_id: Optional[str]) -> None:
        try:
            self.heartbeat(test_req_id)
        except (SendError, codec.ProtocolError) as e:
            logger.warning("test request %r not answered: %s", test_req_id, e)

"""The single reader of a session's connection.

One background thread owns the read side of the transport. It splits the
inbound byte stream into frames, decodes each one, and hands it to the
:class:`Registry` to resolve whichever request it answers. Nothing else
ever reads from the connection; concurrent senders only wait on their
:class:`PendingRequest`.
"""

from __future__ import annotations

import itertools
import logging
import socket
import threading
from typing import Callable, Optional

import zmq

from ..protocol import codec, fields
from ..protocol.message import Message
from .base import ConnectionLost
from .pending import Registry
from .session import Session

logger = logging.getLogger(__name__)

zmq_context = zmq.Context.instance()
_instances = itertools.count()

_frame_restart = fields.SOH + b"8="


class Demultiplexer:
    """Route inbound frames to the requests awaiting them.

    Frames that match no outstanding request (heartbeats, logon replies,
    second and later execution reports for the same order) are offered to
    :meth:`Session.handle_admin` and then to *observer*, if one was given,
    and dropped.
    """

    timeout = 1000

    def __init__(
        self,
        session: Session,
        registry: Registry,
        observer: Optional[Callable[[Message], None]] = None,
    ):
        self.session = session
        self.registry = registry
        self.observer = observer
        self.buffer = bytearray()

        self.received = 0
        self.matched = 0
        self.unmatched = 0
        self.dropped = 0

        self.shutdown = False
        self._thread: Optional[threading.Thread] = None

        internal = f"inproc://fixinject.Demultiplexer:signal:{next(_instances)}"
        self._signal_rx = zmq_context.socket(zmq.PAIR)
        self._signal_rx.bind(internal)
        self._signal_tx = zmq_context.socket(zmq.PAIR)
        self._signal_tx.connect(internal)

    def start(self) -> None:
        """Start reading. The session must already be connected."""
        if self._thread is not None:
            return

        self.shutdown = False
        self._thread = threading.Thread(target=self.run, name="fixinject-reader", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 5) -> None:
        thread = self._thread
        if thread is not None:
            self._signal_tx.send(b"")
            thread.join(timeout)
            self._thread = None

        self._signal_tx.close(linger=0)
        self._signal_rx.close(linger=0)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run(self) -> None:
        fd = self.session.transport.fileno()

        poller = zmq.Poller()
        poller.register(fd, zmq.POLLIN)
        poller.register(self._signal_rx, zmq.POLLIN)

        while not self.shutdown:
            for active, _flag in poller.poll(self.timeout):
                if active == self._signal_rx:
                    self._signal_rx.recv(flags=zmq.NOBLOCK)
                    self.shutdown = True
                elif active == fd:
                    if not self._read():
                        self.shutdown = True

        logger.debug(
            "reader exiting: %d frames, %d matched, %d unmatched, %d dropped",
            self.received, self.matched, self.unmatched, self.dropped,
        )

    def _read(self) -> bool:
        try:
            data = self.session.transport.read()
        except socket.timeout:
            return True
        except OSError as e:
            self._lost(str(e))
            return False

        if not data:
            self._lost("connection closed by counterparty")
            return False

        self.feed(data)
        return True

    def feed(self, data: bytes) -> None:
        """Append *data* to the buffer and dispatch every complete frame."""
        buffer = self.buffer
        buffer.extend(data)

        while buffer:
            start = codec.frame_start(buffer)
            if start is None:
                # Keep enough of the tail to recognize a split frame start.
                if len(buffer) > 2:
                    logger.warning("discarding %d bytes outside any frame", len(buffer) - 2)
                    del buffer[:-2]
                break

            if start > 0:
                logger.warning("discarding %d bytes before frame start", start)
                del buffer[:start]

            end = codec.frame_end(buffer)
            if end is None:
                break

            # A second frame start before the trailer means the first frame
            # was truncated; resynchronize on the later one.

            restart = buffer.find(_frame_restart, 0, end)
            if restart != -1:
                self.dropped += 1
                logger.warning("dropped truncated frame of %d bytes", restart + 1)
                del buffer[:restart + 1]
                continue

            frame = bytes(buffer[:end])
            del buffer[:end]
            self._dispatch(frame)

    def _dispatch(self, frame: bytes) -> None:
        self.received += 1

        try:
            message, _consumed = codec.decode(frame)
        except codec.FramingError as e:
            self.dropped += 1
            logger.warning("dropped malformed frame: %s", e)
            return

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("received %s", message.text())

        if self.registry.resolve(message) is not None:
            self.matched += 1
            return

        self.unmatched += 1
        self.session.handle_admin(message)

        if self.observer is not None:
            try:
                self.observer(message)
            except Exception:
                logger.exception("observer failed on %s", message.text())

    def _lost(self, reason: str) -> None:
        self.session.lost(reason)
        failed = self.registry.fail_all(ConnectionLost(reason))
        if failed:
            logger.error("%d outstanding requests failed: %s", len(failed), reason)

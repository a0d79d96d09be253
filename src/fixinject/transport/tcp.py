"""TCP implementation of :class:`fixinject.transport.base.Transport`."""

from __future__ import annotations

import logging
import socket
from typing import Optional

from .base import Transport

logger = logging.getLogger(__name__)


class TcpTransport(Transport):
    """Plain TCP stream to the counterparty.

    Writes honour *write_timeout*; reads are only ever issued by the
    reader thread after the poller reports the socket readable.
    """

    read_size = 65536

    def __init__(self, host: str, port: int, write_timeout: Optional[float] = None):
        self.host = host
        self.port = int(port)
        self.write_timeout = write_timeout
        self.socket: Optional[socket.socket] = None

    def open(self, timeout: Optional[float] = None) -> None:
        sock = socket.create_connection((self.host, self.port), timeout=timeout)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(self.write_timeout)
        self.socket = sock
        logger.debug("connected to %s:%d", self.host, self.port)

    def close(self) -> None:
        sock = self.socket
        self.socket = None
        if sock is None:
            return

        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already disconnected by the remote side.
            pass
        sock.close()

    def write(self, data: bytes) -> None:
        sock = self.socket
        if sock is None:
            raise OSError("transport is not open")
        sock.sendall(data)

    def read(self) -> bytes:
        sock = self.socket
        if sock is None:
            return b""
        return sock.recv(self.read_size)

    def fileno(self) -> int:
        if self.socket is None:
            return -1
        return self.socket.fileno()

    @property
    def is_open(self) -> bool:
        return self.socket is not None

"""Transport interface.

This is the (small) contract that transport implementations should follow.
It lives outside :mod:`fixinject.protocol` so the protocol remains
transport-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


# Transport agnostic exceptions

class TransportError(Exception):
    """Base class for all transport-layer errors."""


class ConnectError(TransportError):
    """The connection could not be established. Fatal for the run."""


class ConnectionLost(ConnectError):
    """An established connection was closed or failed mid-run."""


class SendError(TransportError):
    """One outbound message could not be written.

    *seq_num* is the sequence number the message consumed, if any.
    """

    def __init__(self, message: str, seq_num: Optional[int] = None):
        super().__init__(message)
        self.seq_num = seq_num


class ResponseTimeout(TransportError, TimeoutError):
    """No correlated response arrived before the deadline."""


class Transport(ABC):
    """Minimal contract for a duplex byte-stream transport."""

    @abstractmethod
    def open(self, timeout: Optional[float] = None) -> None:
        """Establish the underlying connection."""

    @abstractmethod
    def close(self) -> None:
        """Tear down the underlying connection."""

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write all of *data*, or raise OSError."""

    @abstractmethod
    def read(self) -> bytes:
        """Return whatever bytes are available; empty bytes means EOF."""

    @abstractmethod
    def fileno(self) -> int:
        """File descriptor the reader can poll for readability."""

    @property
    def is_open(self) -> bool:
        """Whether the transport is currently connected."""
        return False

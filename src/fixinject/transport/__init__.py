"""Transport layer: the TCP byte stream, the session riding on it, and the
single reader that demultiplexes responses."""

from .base import (
    TransportError,
    ConnectError,
    ConnectionLost,
    SendError,
    ResponseTimeout,
    Transport,
)

from .tcp import TcpTransport
from .session import Session, State
from .pending import PendingRequest, Registry
from .demux import Demultiplexer

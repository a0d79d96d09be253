"""Registry of requests awaiting a correlated response.

The registry is shared between the code that sends requests and the reader
that resolves them; neither owns it.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Dict, List, Optional

from ..protocol import fields
from ..protocol.message import Message
from .base import ResponseTimeout

logger = logging.getLogger(__name__)


class PendingRequest:
    """Client-side slot for one outstanding request.

    The slot resolves at most once: either with the correlated response
    (:meth:`_complete`) or with an error (:meth:`_fail`), whichever happens
    first. Later attempts are ignored and report False.
    """

    def __init__(self, key: str, message: Message, timeout: float):
        self.key = key
        self.message = message
        self.timeout = timeout
        self.seq_num: Optional[int] = None

        self.submitted = time.time()
        self.started = time.perf_counter()
        self.deadline = self.started + timeout

        self.response: Optional[Message] = None
        self.responded: Optional[float] = None
        self.error: Optional[BaseException] = None
        self.finished: Optional[float] = None

        self._lock = threading.Lock()
        self._event = threading.Event()

    def __repr__(self) -> str:
        return f"PendingRequest(key={self.key!r}, seq_num={self.seq_num}, done={self.done()})"

    def done(self) -> bool:
        return self._event.is_set()

    def remaining(self) -> float:
        return max(0.0, self.deadline - time.perf_counter())

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    @property
    def latency(self) -> Optional[float]:
        """Milliseconds between submission and response, if there was one."""
        if self.response is None or self.finished is None:
            return None
        return (self.finished - self.started) * 1000.0

    def _complete(self, response: Message) -> bool:
        with self._lock:
            if self._event.is_set():
                return False
            self.finished = time.perf_counter()
            self.responded = time.time()
            self.response = response
            self._event.set()
        return True

    def _fail(self, error: BaseException) -> bool:
        with self._lock:
            if self._event.is_set():
                return False
            self.finished = time.perf_counter()
            self.error = error
            self._event.set()
        return True


class Registry:
    """Concurrent map of correlation key -> :class:`PendingRequest`.

    Requests are found by the value of *tag* in the inbound message. Session
    level rejects carry no correlation key, so a secondary index by outbound
    sequence number resolves those through RefSeqNum (45).
    """

    def __init__(self, tag: int = fields.CL_ORD_ID):
        self.tag = int(tag)
        self._lock = threading.Lock()
        self._by_key: Dict[str, PendingRequest] = {}
        self._by_seq: Dict[int, PendingRequest] = {}

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._by_key

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_key)

    def register(self, pending: PendingRequest) -> None:
        with self._lock:
            if pending.key in self._by_key:
                raise KeyError(f"correlation key already outstanding: {pending.key!r}")
            self._by_key[pending.key] = pending

    def bind(self, pending: PendingRequest, seq_num: int) -> None:
        """Record the outbound sequence number assigned to *pending*."""
        with self._lock:
            pending.seq_num = seq_num
            if self._by_key.get(pending.key) is pending:
                self._by_seq[seq_num] = pending

    def withdraw(self, pending: PendingRequest) -> None:
        with self._lock:
            self._remove(pending)

    def expire(self, pending: PendingRequest) -> bool:
        """Remove *pending* and resolve it as timed out.

        Returns False if a response already resolved it.
        """
        with self._lock:
            self._remove(pending)

        error = ResponseTimeout(
            f"no response for {pending.key!r} in {pending.timeout:.3f} sec"
        )
        return pending._fail(error)

    def resolve(self, message: Message) -> Optional[PendingRequest]:
        """Route an inbound *message* to the request it answers.

        Returns the resolved request, or None if nothing matched.
        """
        key = message.get(self.tag)
        msg_type = message.msg_type

        with self._lock:
            pending = None

            if key is not None:
                pending = self._by_key.get(key)

            if pending is None and msg_type == fields.BUSINESS_MESSAGE_REJECT:
                reference = message.get(fields.BUSINESS_REJECT_REF_ID)
                if reference is not None:
                    pending = self._by_key.get(reference)

            if pending is None and msg_type == fields.REJECT:
                reference = message.get(fields.REF_SEQ_NUM)
                try:
                    pending = self._by_seq.get(int(reference))
                except (TypeError, ValueError):
                    pending = None

            if pending is None:
                return None

            self._remove(pending)

        if not pending._complete(message):
            # Lost the race against the deadline.
            logger.debug("late response for %r discarded", pending.key)
            return None

        return pending

    def fail_all(self, error: BaseException) -> List[PendingRequest]:
        """Resolve every outstanding request with *error*."""
        with self._lock:
            outstanding = list(self._by_key.values())
            self._by_key.clear()
            self._by_seq.clear()

        failed = [pending for pending in outstanding if pending._fail(error)]
        return failed

    def _remove(self, pending: PendingRequest) -> None:
        if self._by_key.get(pending.key) is pending:
            del self._by_key[pending.key]
        if pending.seq_num is not None and self._by_seq.get(pending.seq_num) is pending:
            del self._by_seq[pending.seq_num]

""" Per-message outcome records and the statistics derived from them.
    Records may arrive in any order as responses complete; they are always
    reported in submission order.
"""

import collections
import dataclasses
import threading
import time
from typing import Optional

import numpy

from .transport import ConnectError, ResponseTimeout


def error_kind(error):
    """ Return the name recorded for *error* on a :class:`ResultRecord`.
        Loss of the connection mid-run is reported as a connect error, and
        a response timeout as a timeout regardless of the exception class
        used internally.
    """

    if isinstance(error, ResponseTimeout):
        return 'TimeoutError'
    if isinstance(error, ConnectError):
        return 'ConnectError'
    return type(error).__name__



@dataclasses.dataclass
class ResultRecord:
    """ The outcome of one injected message. *index* is the submission
        position, starting at zero; *seq_num* is the outbound sequence
        number, None if the message was never handed to the transport.
        Timestamps are UNIX epoch seconds, *latency_ms* is milliseconds.
        Exactly one of *response* and *error* is set.
    """

    index: int
    seq_num: Optional[int]
    key: Optional[str]
    message: str
    submitted: float
    response: Optional[str] = None
    responded: Optional[float] = None
    latency_ms: Optional[float] = None
    error: Optional[str] = None
    error_text: Optional[str] = None

    @property
    def succeeded(self):
        return self.error is None


    @classmethod
    def from_pending(cls, index, pending):
        """ Build a record from a resolved
            :class:`fixinject.transport.PendingRequest`.
        """

        record = cls(index, pending.seq_num, pending.key,
                        pending.message.text(), pending.submitted)

        if pending.response is not None:
            record.response = pending.response.text()
            record.responded = pending.responded
            record.latency_ms = pending.latency
        else:
            record.error = error_kind(pending.error)
            record.error_text = str(pending.error)

        return record


    @classmethod
    def failure(cls, index, key, message, error, seq_num=None):
        """ Build a record for a message that failed before it could await
            a response.
        """

        return cls(index, seq_num, key, message.text(), time.time(),
                        error=error_kind(error), error_text=str(error))


    def to_dict(self):
        return dataclasses.asdict(self)


# end of class ResultRecord



@dataclasses.dataclass(frozen=True)
class RunStatistics:
    """ Aggregate view of a completed run. Latency figures are milliseconds
        over successful records only, and are None if there were none.
    """

    total: int
    successful: int
    failed: int
    success_rate: float
    errors: dict
    elapsed: Optional[float] = None
    throughput: Optional[float] = None
    latency_min: Optional[float] = None
    latency_mean: Optional[float] = None
    latency_max: Optional[float] = None
    latency_p50: Optional[float] = None
    latency_p90: Optional[float] = None
    latency_p99: Optional[float] = None

    @property
    def timeouts(self):
        return self.errors.get('TimeoutError', 0)


    def to_dict(self):
        return dataclasses.asdict(self)


# end of class RunStatistics



class Collector:
    """ Thread-safe accumulator of :class:`ResultRecord` instances.
    """

    def __init__(self):

        self.started = None
        self.finished = None

        self._lock = threading.Lock()
        self._records = list()


    def __len__(self):
        return len(self._records)


    def add(self, record):
        with self._lock:
            self._records.append(record)


    def start(self):
        self.started = time.time()


    def finish(self):
        self.finished = time.time()


    @property
    def failed(self):
        """ True if any message failed.
        """

        with self._lock:
            for record in self._records:
                if record.error is not None:
                    return True

        return False


    @property
    def exit_status(self):
        return 1 if self.failed else 0


    def records(self):
        """ Return every record, in submission order.
        """

        with self._lock:
            records = list(self._records)

        records.sort(key=lambda record: record.index)
        return records


    def statistics(self):
        """ Compute a :class:`RunStatistics` over the records collected so
            far; normally invoked once, after the run is complete.
        """

        records = self.records()
        total = len(records)

        errors = collections.Counter()
        latencies = list()

        for record in records:
            if record.error is not None:
                errors[record.error] += 1
            elif record.latency_ms is not None:
                latencies.append(record.latency_ms)

        failed = sum(errors.values())
        successful = total - failed

        if total:
            success_rate = successful / float(total)
        else:
            success_rate = 0.0

        elapsed = None
        throughput = None

        if self.started is not None and self.finished is not None:
            elapsed = self.finished - self.started
            if elapsed > 0:
                throughput = total / elapsed

        figures = dict()

        if latencies:
            latencies = numpy.array(latencies, dtype=float)
            p50, p90, p99 = numpy.percentile(latencies, (50, 90, 99))

            figures['latency_min'] = float(latencies.min())
            figures['latency_mean'] = float(latencies.mean())
            figures['latency_max'] = float(latencies.max())
            figures['latency_p50'] = float(p50)
            figures['latency_p90'] = float(p90)
            figures['latency_p99'] = float(p99)

        return RunStatistics(total, successful, failed, success_rate,
                        dict(errors), elapsed, throughput, **figures)


# end of class Collector


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

""" Rate- and concurrency-bounded dispatch of message templates. The
    :class:`Scheduler` sends on a single thread, so outbound sequence
    numbers follow submission order; only the waiting for responses is
    spread across a pool of worker threads.
"""

import concurrent.futures
import itertools
import logging
import threading
import time

from .protocol import codec
from .results import Collector, ResultRecord
from .transport import ConnectError, PendingRequest, SendError

logger = logging.getLogger(__name__)


class Scheduler:
    """ Inject a sequence of templates through *session*. Each message is
        registered in *registry* under its correlation key before it is
        sent, so the reader can resolve it the moment a response arrives.
        Results accumulate in *collector*; *config* is an
        :class:`fixinject.config.InjectionConfig`.

        A :class:`Scheduler` performs one run.
    """

    def __init__(self, session, registry, config, collector=None):

        if collector is None:
            collector = Collector()

        self.session = session
        self.registry = registry
        self.config = config
        self.collector = collector

        self.key_prefix = 'FI%x-' % (int(time.time()))
        self.slots = threading.BoundedSemaphore(config.max_concurrent)
        self.workers = None

        self._keys = set()
        self._ticker = itertools.count(1)


    def run(self, templates):
        """ Dispatch every template, in batches of ``batch_size``, pausing
            between batches so that submission does not exceed ``rate``
            messages per second. Returns the :class:`Collector` once every
            dispatched message has resolved.

            If the session is lost the remaining templates are not sent;
            each is recorded as a connect error.
        """

        templates = list(templates)
        config = self.config
        total = len(templates)
        interval = config.batch_interval

        futures = list()
        index = 0

        self.workers = concurrent.futures.ThreadPoolExecutor(
                        max_workers=config.max_concurrent,
                        thread_name_prefix='fixinject-worker')

        self.collector.start()
        logger.info("injecting %d messages: rate %s/s, batch %d, max in flight %d",
                        total, config.rate or 'unlimited', config.batch_size,
                        config.max_concurrent)

        try:
            while index < total and self.session.connected:
                begin = time.monotonic()
                end = min(index + config.batch_size, total)

                while index < end and self.session.connected:
                    future = self.dispatch(index, templates[index])
                    if future is not None:
                        futures.append(future)
                    index += 1

                if index < total:
                    delay = interval - (time.monotonic() - begin)
                    if delay > 0:
                        time.sleep(delay)

            if index < total:
                self._abort(templates, index)

            concurrent.futures.wait(futures)

        finally:
            self.workers.shutdown(wait=True)
            self.collector.finish()

        for future in futures:
            # Surface anything unexpected raised by a worker.
            future.result()

        statistics = self.collector.statistics()
        logger.info("injection complete: %d/%d succeeded, %d failed",
                        statistics.successful, statistics.total, statistics.failed)

        return self.collector


    def dispatch(self, index, template):
        """ Send one template. Returns the future of the worker awaiting its
            response, or None if the message could not be sent, in which
            case its failure has already been recorded.
        """

        key, message = self.correlate(template)

        self.slots.acquire()

        pending = PendingRequest(key, message, self.config.response_timeout)

        try:
            self.registry.register(pending)
        except KeyError:
            self.slots.release()
            raise

        def assign(seq_num):
            self.registry.bind(pending, seq_num)

        try:
            # Bound before the write; a Reject may cite the sequence number
            # before send returns.
            stamped = self.session.send(message, assign)
        except (SendError, codec.ProtocolError) as e:
            self.registry.withdraw(pending)
            self.slots.release()

            pending.seq_num = getattr(e, 'seq_num', None)
            pending._fail(e)
            self.collector.add(ResultRecord.from_pending(index, pending))

            logger.warning("message %d (%s) not sent: %s", index, key, e)
            return None

        pending.message = stamped

        return self.workers.submit(self._await, index, pending)


    def correlate(self, template):
        """ Return the correlation key and the message to send for
            *template*. The template's own key is used if it has one that
            has not been seen yet in this run; otherwise a fresh key is
            generated and set in a copy of the template.
        """

        tag = self.config.correlation_tag
        key = template.get(tag)

        if key is not None and key not in self._keys:
            message = template
        else:
            if key is not None:
                logger.debug("correlation key %r reused, replacing it", key)

            key = self._next_key()
            message = template.copy()
            message.set(tag, key)

        self._keys.add(key)
        return key, message


    def _next_key(self):

        while True:
            key = '%s%08x' % (self.key_prefix, next(self._ticker))
            if key not in self._keys:
                return key


    def _await(self, index, pending):
        """ Worker body: wait for *pending* to resolve or expire, then
            record the outcome and release its concurrency slot.
        """

        try:
            if not pending.wait(pending.remaining()):
                if self.registry.expire(pending):
                    logger.warning("message %d (%s) timed out after %.3f sec",
                                    index, pending.key, pending.timeout)

            self.collector.add(ResultRecord.from_pending(index, pending))
        finally:
            self.slots.release()


    def _abort(self, templates, start):

        total = len(templates)
        error = ConnectError('session %s, injection aborted' % (self.session.state.value))

        logger.error("aborting: %d of %d messages not sent", total - start, total)

        tag = self.config.correlation_tag
        for index in range(start, total):
            template = templates[index]
            record = ResultRecord.failure(index, template.get(tag), template, error)
            self.collector.add(record)


# end of class Scheduler


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

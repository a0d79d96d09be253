""" Implementation of the top-level :func:`run` method. This is intended to
    be the principal entry point: given a connection, pacing parameters and
    a list of templates, establish the session, inject every template, and
    hand back the collected results.
"""

import logging

from .config import InjectionConfig
from .heartbeat import Heartbeat
from .results import Collector
from .scheduler import Scheduler
from .transport import ConnectError, Demultiplexer, Registry, Session

logger = logging.getLogger(__name__)


class Injector:
    """ Wire the components of a run together. The :class:`Session` is
        created here and shared by reference with the reader and the
        scheduler; the :class:`Registry` is created here and injected into
        both, which is what lets the reader resolve requests the scheduler
        registered without either owning the other.

        *observer*, if provided, is invoked with every inbound message that
        did not answer an outstanding request.
    """

    def __init__(self, connection, injection=None, observer=None, transport=None):

        if injection is None:
            injection = InjectionConfig()

        self.connection = connection
        self.injection = injection
        self.observer = observer

        self.session = Session(connection, transport)
        self.registry = Registry(injection.correlation_tag)
        self.collector = Collector()
        self.reader = None
        self.heartbeat = None


    def run(self, templates):
        """ Inject *templates* and return the :class:`Collector`. A failure
            to connect or log on raises :class:`ConnectError` and nothing is
            injected; any other failure is recorded per message.
        """

        self.start()

        try:
            scheduler = Scheduler(self.session, self.registry,
                                    self.injection, self.collector)
            scheduler.run(templates)
        finally:
            self.stop()

        return self.collector


    def start(self):
        """ Connect, log on, and start the background reader and heartbeat.
        """

        session = self.session
        session.connect()

        self.reader = Demultiplexer(session, self.registry, self.observer)
        self.reader.start()

        if self.connection.wait_for_logon:
            timeout = self.connection.logon_timeout
            if not session.wait_logon(timeout):
                self.stop()
                raise ConnectError('no logon response in %.1f sec' % (timeout))

        self.heartbeat = Heartbeat(session, self.connection.heartbeat_interval or 0)
        self.heartbeat.start()


    def stop(self, reason=None):
        """ Log out and release everything :func:`start` acquired. Safe to
            call more than once.
        """

        if self.heartbeat is not None:
            self.heartbeat.stop()
            self.heartbeat = None

        if self.reader is not None:
            self.reader.stop()
            self.reader = None

        self.session.disconnect(reason)


# end of class Injector



def run(connection, injection, templates, observer=None):
    """ Convenience wrapper: construct an :class:`Injector` and run it.
        Returns the :class:`Collector`; its ``exit_status`` is zero only if
        every message succeeded.
    """

    injector = Injector(connection, injection, observer)
    collector = injector.run(templates)

    statistics = collector.statistics()

    if statistics.latency_mean is not None:
        logger.info("latency ms: min %.3f mean %.3f max %.3f p99 %.3f",
                        statistics.latency_min, statistics.latency_mean,
                        statistics.latency_max, statistics.latency_p99)

    return collector


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

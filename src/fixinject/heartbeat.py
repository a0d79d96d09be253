""" Keep an otherwise idle session alive. A :class:`Heartbeat` runs a
    background thread that sends a Heartbeat message whenever nothing has
    been written to the session for a full heartbeat interval. Normal
    outbound traffic resets the clock, so during a busy injection no
    heartbeats are sent at all.
"""

import logging
import threading
import time
import weakref

from .protocol import codec
from .transport import SendError

logger = logging.getLogger(__name__)


class Heartbeat:
    """ Background thread to send heartbeats for *session* every *interval*
        seconds of outbound silence. Only a weak reference to the session is
        held; if the session goes away the thread exits on its own.
    """

    def __init__(self, session, interval):

        self.interval = float(interval)
        self.reference = weakref.ref(session)
        self.sent = 0
        self.shutdown = False

        self.alarm = threading.Event()
        self.thread = None


    def start(self):

        if self.interval <= 0 or self.thread is not None:
            return

        self.thread = threading.Thread(target=self.run, name='fixinject-heartbeat')
        self.thread.daemon = True
        self.thread.start()


    def run(self):

        while True:
            session = self.reference()

            if self.shutdown == True or session is None:
                break

            # Ideally a heartbeat goes out exactly one interval after the
            # last outbound message; whatever was sent most recently, by
            # anyone, sets the next wakeup.

            idle = time.monotonic() - session.last_sent

            if idle >= self.interval:
                if session.connected:
                    try:
                        session.heartbeat()
                    except (SendError, codec.ProtocolError) as e:
                        logger.warning("heartbeat not sent: %s", e)
                    else:
                        self.sent += 1
                delay = self.interval
            else:
                delay = self.interval - idle

            # Drop the strong reference before sleeping.
            session = None
            self.alarm.wait(delay)


    def stop(self):

        self.shutdown = True
        self.alarm.set()

        if self.thread is not None:
            self.thread.join()
            self.thread = None


# end of class Heartbeat


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

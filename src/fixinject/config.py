""" Configuration for a fixinject run. There are two blocks: the
    :class:`ConnectionConfig` describing the counterparty session, and the
    :class:`InjectionConfig` describing how messages are paced. Both are
    immutable once constructed.

    A configuration file is a JSON document with a 'connection' and an
    'injection' object, for example::

        {
          "connection": {"host": "fix.example.com", "port": 9878,
                         "sender_comp_id": "CLIENT", "target_comp_id": "EXCH"},
          "injection": {"rate": 500, "max_concurrent": 50}
        }

    The password may be omitted from the file and supplied through the
    FIXINJECT_PASSWORD environment variable instead.
"""

import dataclasses
import logging
import os

from . import json
from .protocol import fields

logger = logging.getLogger(__name__)

password_variable = 'FIXINJECT_PASSWORD'


@dataclasses.dataclass(frozen=True)
class ConnectionConfig:
    """ Everything required to establish and maintain one session. The
        timeouts are in seconds: *logon_timeout* bounds the socket connect
        (and the logon acknowledgment, if *wait_for_logon* is set);
        *socket_timeout* bounds each write.
    """

    host: str
    port: int
    sender_comp_id: str
    target_comp_id: str
    username: str = None
    password: str = None
    heartbeat_interval: int = 30
    logon_timeout: float = 10.0
    socket_timeout: float = 5.0
    begin_string: str = 'FIX.4.4'
    reset_on_logon: bool = False
    wait_for_logon: bool = False

    def __post_init__(self):

        if self.port is None or not 0 < int(self.port) < 65536:
            raise ValueError('invalid port: ' + repr(self.port))

        if not self.sender_comp_id or not self.target_comp_id:
            raise ValueError('sender_comp_id and target_comp_id are required')

        if self.heartbeat_interval is not None and self.heartbeat_interval < 0:
            raise ValueError('heartbeat_interval must be non-negative')

        # Frozen dataclass, hence object.__setattr__.

        object.__setattr__(self, 'port', int(self.port))


    def __repr__(self):
        # Keep credentials out of log output.
        password = None if self.password is None else '***'
        return 'ConnectionConfig(%s:%d %s->%s, username=%r, password=%s)' % (
                self.host, self.port, self.sender_comp_id,
                self.target_comp_id, self.username, password)


# end of class ConnectionConfig



@dataclasses.dataclass(frozen=True)
class InjectionConfig:
    """ Pacing of the injection. *rate* is the target submission rate in
        messages per second; zero or None disables pacing. *max_concurrent*
        bounds how many messages may be awaiting a response at once, and
        *response_timeout* is how long, in seconds, each message waits for
        its correlated response. The correlation key is the value of
        *correlation_tag* in each outbound message.
    """

    rate: float = None
    max_concurrent: int = 100
    batch_size: int = 10
    response_timeout: float = 5.0
    correlation_tag: int = fields.CL_ORD_ID

    def __post_init__(self):

        if self.rate is not None and self.rate < 0:
            raise ValueError('rate must be non-negative')

        if self.max_concurrent < 1:
            raise ValueError('max_concurrent must be at least 1')

        if self.batch_size < 1:
            raise ValueError('batch_size must be at least 1')

        if self.response_timeout <= 0:
            raise ValueError('response_timeout must be positive')


    @property
    def batch_interval(self):
        """ The minimum wall-clock duration of one batch, in seconds.
        """

        if not self.rate:
            return 0
        return self.batch_size / float(self.rate)


# end of class InjectionConfig



def from_dict(document):
    """ Build a (:class:`ConnectionConfig`, :class:`InjectionConfig`) pair
        from a dictionary shaped like the JSON configuration file.
    """

    try:
        connection = dict(document['connection'])
    except KeyError:
        raise ValueError("configuration lacks a 'connection' block") from None

    injection = dict(document.get('injection', {}))

    if connection.get('password') is None:
        password = os.environ.get(password_variable)
        if password:
            connection['password'] = password

    try:
        connection = ConnectionConfig(**connection)
        injection = InjectionConfig(**injection)
    except TypeError as e:
        # Unknown or missing keys.
        raise ValueError('invalid configuration: ' + str(e)) from e

    return connection, injection



def load(filename):
    """ Read a JSON configuration file and return the pair of
        configuration objects described by :func:`from_dict`.
    """

    with open(filename, 'rb') as file:
        document = json.loads(file.read())

    logger.debug("loaded configuration from %s", filename)
    return from_dict(document)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

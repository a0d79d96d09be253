""" Exercise the reader in isolation: framing of a chunked byte stream,
    routing to pending requests, and handling of a closed connection.
"""

import random
import socket
import time

from fixinject.protocol import codec, fields
from fixinject.protocol.message import Message
from fixinject.transport import ConnectionLost, Demultiplexer, PendingRequest, Registry


class SocketTransport:
    """ One end of a socket pair, standing in for the TCP transport.
    """

    def __init__(self, sock):
        self.socket = sock

    def read(self):
        return self.socket.recv(65536)

    def fileno(self):
        return self.socket.fileno()


class StubSession:

    def __init__(self, transport=None):
        self.transport = transport
        self.admin = list()
        self.reason = None

    def handle_admin(self, message):
        self.admin.append(message)
        return message.msg_type in fields.ADMIN

    def lost(self, reason):
        self.reason = reason


def frame(msg_type, **tags):

    message = [(8, 'FIX.4.4'), (35, msg_type)]
    for tag, value in tags.items():
        message.append((int(tag[1:]), value))
    return codec.encode(message)


def test_shuffled_correlation():
    """ Responses for many concurrently outstanding requests, arriving in a
        random order and split at random byte boundaries, each resolve the
        request carrying the same key and no other.
    """

    registry = Registry()
    reader = Demultiplexer(StubSession(), registry)

    requests = list()
    for number in range(50):
        key = 'K%03d' % (number)
        pending = PendingRequest(key, Message([(35, 'D'), (11, key)]), timeout=5)
        registry.register(pending)
        requests.append(pending)

    frames = [frame('8', t11=pending.key, t37='O' + pending.key) for pending in requests]

    generator = random.Random(7)
    generator.shuffle(frames)
    stream = b''.join(frames)

    offset = 0
    while offset < len(stream):
        size = generator.randint(1, 97)
        reader.feed(stream[offset:offset + size])
        offset += size

    reader.stop()

    assert reader.matched == 50
    assert reader.dropped == 0
    assert len(reader.buffer) == 0

    for pending in requests:
        assert pending.done()
        assert pending.response[11] == pending.key
        assert pending.response[37] == 'O' + pending.key


def test_unsolicited_and_observer():

    observed = list()
    session = StubSession()
    reader = Demultiplexer(session, Registry(), observed.append)

    reader.feed(frame('0') + frame('B', t148='headline'))
    reader.stop()

    assert reader.unmatched == 2
    assert [message.msg_type for message in session.admin] == ['0', 'B']
    assert [message.msg_type for message in observed] == ['0', 'B']


def test_observer_failure_does_not_stop_reading():

    def observer(message):
        raise RuntimeError('observer bug')

    registry = Registry()
    pending = PendingRequest('abc', Message(), timeout=5)
    registry.register(pending)

    reader = Demultiplexer(StubSession(), registry, observer)
    reader.feed(frame('0') + frame('8', t11='abc'))
    reader.stop()

    assert pending.done()


def test_garbage_and_corruption():
    """ Noise between frames is discarded, a frame with a bad checksum is
        dropped, and a truncated frame followed by a good one costs only
        the truncated frame.
    """

    registry = Registry()
    requests = dict()
    for key in ('a', 'b', 'c'):
        requests[key] = PendingRequest(key, Message(), timeout=5)
        registry.register(requests[key])

    good = frame('8', t11='a')
    corrupt = frame('8', t11='b').replace(b'11=b', b'11=c')
    truncated = frame('8', t11='c')[:15]
    last = frame('8', t11='c')

    reader = Demultiplexer(StubSession(), registry)
    reader.feed(b'line noise\x01' + good + corrupt + truncated + last)
    reader.stop()

    assert reader.dropped == 2
    assert requests['a'].done()
    assert requests['b'].done() == False
    assert requests['c'].done()


def test_partial_frame_waits():

    registry = Registry()
    pending = PendingRequest('abc', Message(), timeout=5)
    registry.register(pending)

    data = frame('8', t11='abc')

    reader = Demultiplexer(StubSession(), registry)
    reader.feed(data[:-1])
    assert pending.done() == False

    reader.feed(data[-1:])
    reader.stop()

    assert pending.done()


def test_reader_thread():
    """ The background thread reads from the transport, routes what it
        reads, and fails every outstanding request when the far end closes
        the connection.
    """

    near, far = socket.socketpair()
    session = StubSession(SocketTransport(near))
    registry = Registry()

    answered = PendingRequest('a', Message(), timeout=5)
    abandoned = PendingRequest('b', Message(), timeout=5)
    registry.register(answered)
    registry.register(abandoned)

    reader = Demultiplexer(session, registry)
    reader.start()

    far.sendall(frame('8', t11='a'))
    assert answered.wait(2)

    far.close()
    assert abandoned.wait(2)

    deadline = time.time() + 2
    while reader.running and time.time() < deadline:
        time.sleep(0.01)

    assert reader.running == False
    reader.stop()
    near.close()

    assert answered.response[11] == 'a'
    assert isinstance(abandoned.error, ConnectionLost)
    assert session.reason is not None


class StallingTransport(SocketTransport):
    """ Times out on the first read, as a socket with a timeout may when
        the poller wakes before the data is readable.
    """

    def __init__(self, sock):
        SocketTransport.__init__(self, sock)
        self.stalls = 1

    def read(self):
        if self.stalls:
            self.stalls -= 1
            raise socket.timeout('timed out')
        return SocketTransport.read(self)


def test_read_timeout_is_not_a_loss():

    near, far = socket.socketpair()
    transport = StallingTransport(near)
    session = StubSession(transport)
    registry = Registry()

    pending = PendingRequest('a', Message(), timeout=5)
    registry.register(pending)

    reader = Demultiplexer(session, registry)
    reader.start()

    far.sendall(frame('8', t11='a'))
    assert pending.wait(2)

    assert transport.stalls == 0
    assert reader.running
    assert session.reason is None
    assert pending.error is None

    reader.stop()
    near.close()
    far.close()


def test_stop():

    near, far = socket.socketpair()
    reader = Demultiplexer(StubSession(SocketTransport(near)), Registry())
    reader.start()
    assert reader.running

    begin = time.time()
    reader.stop()
    assert time.time() - begin < 1
    assert reader.running == False

    near.close()
    far.close()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

import random
import socket
import threading
import time

import pytest

from fixinject.config import ConnectionConfig, InjectionConfig
from fixinject.protocol import codec, fields
from fixinject.protocol.message import Message
from fixinject.transport.session import timestamp


class Counterparty:
    """ A minimal in-process FIX acceptor. It accepts one connection,
        answers Logon and Logout, records every message it receives, and
        hands application messages to :attr:`responder`, which returns a
        list of messages to send back (or None). The default responder
        answers each order immediately with an execution report.
    """

    def __init__(self, answer_logon=True):

        self.answer_logon = answer_logon
        self.responder = self.echo
        self.received = list()
        self.seq_num = 1
        self.shutdown = False

        self.connection = None
        self.connected = threading.Event()
        self.lock = threading.Lock()

        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.listener.bind(('127.0.0.1', 0))
        self.listener.listen(1)
        self.listener.settimeout(0.05)
        self.port = self.listener.getsockname()[1]

        self.thread = threading.Thread(target=self.run)
        self.thread.daemon = True
        self.thread.start()


    def run(self):

        while self.shutdown == False:
            try:
                connection, _address = self.listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            break
        else:
            return

        connection.settimeout(0.05)
        self.connection = connection
        self.connected.set()

        buffer = b''

        while self.shutdown == False:
            try:
                data = connection.recv(65536)
            except socket.timeout:
                continue
            except OSError:
                break

            if not data:
                break

            buffer += data

            while True:
                try:
                    message, consumed = codec.decode(buffer)
                except codec.IncompleteFrame:
                    break

                buffer = buffer[consumed:]
                self.received.append(message)
                self.handle(message)


    def handle(self, message):

        msg_type = message.msg_type

        if msg_type == fields.LOGON:
            if self.answer_logon:
                self.send(Message([(fields.MSG_TYPE, fields.LOGON),
                                   (fields.ENCRYPT_METHOD, 0),
                                   (fields.HEARTBT_INT, 30)]))
            return

        if msg_type == fields.LOGOUT or msg_type == fields.HEARTBEAT:
            return

        replies = self.responder(message)
        for reply in replies or ():
            self.send(reply)


    def send(self, message):

        message = message.copy()
        message.set(fields.BEGIN_STRING, 'FIX.4.4')
        message.set(fields.SENDER_COMP_ID, 'EXCH')
        message.set(fields.TARGET_COMP_ID, 'CLIENT')

        with self.lock:
            message.set(fields.MSG_SEQ_NUM, self.seq_num)
            message.set(fields.SENDING_TIME, timestamp())
            self.seq_num += 1
            self.connection.sendall(codec.encode(message))


    def disconnect(self):
        """ Drop the client connection without a Logout.
        """

        connection = self.connection
        if connection is None:
            return

        try:
            connection.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        connection.close()


    def close(self):

        self.shutdown = True
        self.thread.join(1)
        self.listener.close()
        self.disconnect()


    def application(self):
        """ Return every received message that is not session-level.
        """

        return [message for message in self.received if message.msg_type not in fields.ADMIN]


    def wait_for(self, count, timeout=5):
        """ Block until *count* application messages have arrived.
        """

        deadline = time.time() + timeout
        while time.time() < deadline:
            if len(self.application()) >= count:
                return True
            time.sleep(0.01)
        return False


    @staticmethod
    def execution_report(order):

        key = order[fields.CL_ORD_ID]
        report = Message([(fields.MSG_TYPE, fields.EXECUTION_REPORT),
                          (37, 'O-' + key),
                          (17, 'E-' + key),
                          (fields.CL_ORD_ID, key),
                          (150, '0'),
                          (39, '0')])
        return report


    def echo(self, message):
        return [self.execution_report(message)]


    def reverse(self, count):
        """ Return a responder that holds orders until *count* have arrived,
            then answers them newest first.
        """

        held = list()

        def responder(message):
            held.append(message)
            if len(held) == count:
                return [self.execution_report(order) for order in reversed(held)]

        return responder


    def shuffle(self, count, seed=23):
        """ Return a responder that answers every *count* orders in a random
            order.
        """

        held = list()
        generator = random.Random(seed)

        def responder(message):
            held.append(message)
            if len(held) == count:
                batch = list(held)
                del held[:]
                generator.shuffle(batch)
                return [self.execution_report(order) for order in batch]

        return responder


    def ignore(self, *keys):
        """ Return a responder that never answers the given correlation keys.
        """

        def responder(message):
            if message.get(fields.CL_ORD_ID) in keys:
                return None
            return [self.execution_report(message)]

        return responder


# end of class Counterparty



def build_order(key=None, symbol='TSLA'):

    message = Message([(fields.BEGIN_STRING, 'FIX.4.4'),
                       (fields.MSG_TYPE, fields.NEW_ORDER_SINGLE),
                       (fields.SENDER_COMP_ID, 'PLACEHOLDER'),
                       (fields.TARGET_COMP_ID, 'PLACEHOLDER'),
                       (fields.MSG_SEQ_NUM, 0),
                       (fields.SENDING_TIME, '19700101-00:00:00.000')])

    if key is not None:
        message.set(fields.CL_ORD_ID, key)

    message.set(55, symbol)
    message.set(54, 1)
    message.set(38, 10)
    message.set(44, '123.45')
    message.set(40, 2)
    return message



@pytest.fixture
def counterparty():
    stub = Counterparty()
    yield stub
    stub.close()


@pytest.fixture
def silent_counterparty():
    stub = Counterparty(answer_logon=False)
    yield stub
    stub.close()


@pytest.fixture
def connection(counterparty):
    return ConnectionConfig('127.0.0.1', counterparty.port, 'CLIENT', 'EXCH',
                            logon_timeout=2, socket_timeout=2)


@pytest.fixture
def order():
    return build_order


@pytest.fixture
def orders():
    """ Factory for lists of new order templates with distinct keys.
    """

    def factory(count, prefix='K'):
        return [build_order('%s%04d' % (prefix, number)) for number in range(count)]

    return factory


@pytest.fixture
def injection():
    return InjectionConfig(rate=None, max_concurrent=10, batch_size=10,
                           response_timeout=2)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

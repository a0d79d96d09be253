""" Translation between :class:`fixinject.protocol.message.Message` instances
    and the tag=value byte frames that go on the wire. Everything here is
    a pure function; the only error path is malformed input.
"""

from .fields import BEGIN_STRING, BODY_LENGTH, CHECKSUM, SOH
from .message import Message


encoding = 'utf-8'

_frame_start = SOH + b'8='
_trailer_start = SOH + b'10='


class FramingError(ValueError):
    """ Inbound bytes do not form a valid frame.
    """

    pass


class IncompleteFrame(FramingError):
    """ The data ends before the checksum field; more bytes are needed
        before the frame can be decoded.
    """

    pass


class ProtocolError(ValueError):
    """ An outbound message cannot be encoded as a valid frame.
    """

    pass



def checksum(data):
    """ Return the protocol checksum of *data*: the sum of every byte
        value, modulo 256.
    """

    return sum(data) % 256



def encode(fields):
    """ Encode the supplied sequence of (tag, value) pairs as a complete
        frame. The begin string (tag 8) must be present; it is moved to the
        front regardless of where the caller put it. Any body length (tag 9)
        or checksum (tag 10) in the input is discarded and recomputed. All
        other fields retain the caller's order.

        The body length counts the bytes between the end of the body length
        field and the start of the checksum field; the checksum covers
        every byte before the checksum field.
    """

    begin = None
    body = list()

    for tag, value in fields:
        try:
            tag = int(tag)
        except (TypeError, ValueError):
            raise ProtocolError('invalid tag: ' + repr(tag)) from None

        if tag == BEGIN_STRING:
            if begin is None:
                begin = value
            continue

        if tag == BODY_LENGTH or tag == CHECKSUM:
            continue

        body.append(_field(tag, value))

    if begin is None:
        raise ProtocolError('missing begin string (tag 8)')

    body = b''.join(body)
    frame = _field(BEGIN_STRING, begin) + _field(BODY_LENGTH, len(body)) + body
    frame += _field(CHECKSUM, '%03d' % (checksum(frame)))

    return frame



def decode(data, verify=True):
    """ Decode the frame at the start of *data*, which may be followed by
        additional bytes belonging to subsequent frames. Returns a tuple of
        the decoded :class:`Message` and the number of bytes consumed.

        :class:`IncompleteFrame` is raised if *data* ends before the
        checksum field does; :class:`FramingError` is raised for any other
        structural problem. If *verify* is True the declared body length
        and checksum are compared against the bytes received.
    """

    data = bytes(data)
    length = len(data)
    offset = 0
    starts = list()
    fields = list()

    while True:
        if offset >= length:
            raise IncompleteFrame('no checksum field in %d bytes' % (length))

        end = data.find(SOH, offset)
        if end == -1:
            raise IncompleteFrame('unterminated field at offset %d' % (offset))

        raw = data[offset:end]
        tag, separator, value = raw.partition(b'=')

        if separator == b'':
            raise FramingError('field at offset %d lacks a separator: %r' % (offset, raw))

        try:
            tag = int(tag)
        except ValueError:
            raise FramingError('invalid tag at offset %d: %r' % (offset, tag)) from None

        starts.append(offset)
        fields.append((tag, value.decode(encoding, errors='replace')))
        offset = end + 1

        if tag == CHECKSUM:
            break

    if fields[0][0] != BEGIN_STRING:
        raise FramingError('frame does not begin with tag 8')

    if verify:
        _verify(data, fields, starts)

    return Message(fields), offset



def frame_start(buffer):
    """ Return the offset of the first frame start (a begin string field)
        in *buffer*, or None if there isn't one.
    """

    if buffer[:2] == b'8=':
        return 0

    index = buffer.find(_frame_start)
    if index == -1:
        return None

    return index + 1



def frame_end(buffer, start=0):
    """ Return the offset immediately after the checksum field of the first
        frame at or after *start*, or None if *buffer* does not yet contain
        a complete checksum field.
    """

    index = buffer.find(_trailer_start, start)
    if index == -1:
        return None

    end = buffer.find(SOH, index + len(_trailer_start))
    if end == -1:
        return None

    return end + 1



def _field(tag, value):

    if isinstance(value, bytes):
        pass
    else:
        value = str(value).encode(encoding)

    if SOH in value:
        raise ProtocolError('value for tag %d contains the field separator' % (tag))

    return b'%d=%s' % (tag, value) + SOH



def _verify(data, fields, starts):

    if len(fields) < 3 or fields[1][0] != BODY_LENGTH:
        raise FramingError('frame lacks a body length (tag 9) after the begin string')

    body_start = starts[2]
    trailer_start = starts[-1]

    try:
        declared = int(fields[1][1])
    except ValueError:
        raise FramingError('invalid body length: ' + repr(fields[1][1])) from None

    actual = trailer_start - body_start
    if declared != actual:
        raise FramingError('body length is %d, frame declares %d' % (actual, declared))

    declared = fields[-1][1]
    actual = '%03d' % (checksum(data[:trailer_start]))
    if declared != actual:
        raise FramingError('checksum is %s, frame declares %s' % (actual, declared))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

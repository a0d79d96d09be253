""" A class representation of a tag=value message.
"""

from .fields import BEGIN_STRING, BODY_LENGTH, CHECKSUM, HEADER, MSG_TYPE, SOH_TEXT


class Message:
    """ The :class:`Message` provides a very thin encapsulation of what it
        means to be a message in a FIX context: an ordered sequence of
        (tag, value) fields. Order matters on the wire, so it is preserved
        exactly as supplied; lookups are by tag, returning the first field
        with a matching tag. Tags are integers, values are strings.

        A :class:`Message` does not know how to frame itself; see
        :mod:`fixinject.protocol.codec` for that.

        :ivar fields: The list of (tag, value) tuples.
    """

    def __init__(self, fields=None):

        self.fields = list()

        if fields is None:
            return

        for tag, value in fields:
            self.fields.append((int(tag), str(value)))


    def __contains__(self, tag):
        return self._index(tag) is not None


    def __eq__(self, other):
        if isinstance(other, Message):
            return self.fields == other.fields
        return NotImplemented


    def __getitem__(self, tag):

        index = self._index(tag)
        if index is None:
            raise KeyError('tag not present: ' + str(tag))

        return self.fields[index][1]


    def __iter__(self):
        return iter(self.fields)


    def __len__(self):
        return len(self.fields)


    def __repr__(self):
        return 'Message(' + repr(self.text()) + ')'


    def _index(self, tag):
        tag = int(tag)
        for index, field in enumerate(self.fields):
            if field[0] == tag:
                return index
        return None


    def copy(self):
        return Message(self.fields)


    def get(self, tag, default=None):
        try:
            return self[tag]
        except KeyError:
            return default


    @property
    def msg_type(self):
        return self.get(MSG_TYPE)


    def remove(self, tag):
        """ Remove every field with the given *tag*.
        """

        tag = int(tag)
        self.fields = [field for field in self.fields if field[0] != tag]


    def set(self, tag, value):
        """ Replace the value of the first field matching *tag*. If the tag is
            not present the field is appended; standard header fields are
            instead inserted into the header, after the begin string and
            message type, so that a stamped message still reads in the
            conventional order.
        """

        tag = int(tag)
        value = str(value)

        index = self._index(tag)
        if index is not None:
            self.fields[index] = (tag, value)
            return

        if tag in HEADER or tag == BEGIN_STRING:
            position = self._header_position(tag)
        else:
            position = len(self.fields)
            if self.fields and self.fields[-1][0] == CHECKSUM:
                position -= 1

        self.fields.insert(position, (tag, value))


    def _header_position(self, tag):
        """ Find where a missing header *tag* belongs: after every field
            that precedes it in the conventional header order.
        """

        if tag == BEGIN_STRING:
            return 0

        before = set((BEGIN_STRING, BODY_LENGTH))
        for header in HEADER:
            if header == tag:
                break
            before.add(header)

        position = 0
        for index, field in enumerate(self.fields):
            if field[0] in before:
                position = index + 1
            else:
                break

        return position


    def text(self, separator='|'):
        """ Return a human-readable rendition of the message with the field
            separator replaced by *separator*.
        """

        pairs = ['%d=%s' % (tag, value) for tag, value in self.fields]
        return separator.join(pairs)


    @classmethod
    def parse(cls, text):
        """ Parse a single line of tag=value text into a :class:`Message`.
            The fields may be separated by the protocol separator or, for
            hand-written templates, by a vertical bar.
        """

        text = text.strip()

        if SOH_TEXT in text:
            separator = SOH_TEXT
        else:
            separator = '|'

        fields = list()
        for pair in text.split(separator):
            if pair == '':
                continue

            tag, equals, value = pair.partition('=')
            if equals == '':
                raise ValueError('field lacks "=": ' + repr(pair))

            try:
                tag = int(tag)
            except ValueError:
                raise ValueError('invalid tag: ' + repr(tag)) from None

            fields.append((tag, value))

        return cls(fields)


# end of class Message


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

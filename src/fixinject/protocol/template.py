""" Reading pre-built outbound message templates. A template source is
    line-delimited text, one message per line; blank lines and lines
    starting with '#' are ignored. Session header fields in a template
    (sequence number, sending time, sender and target) are placeholders,
    they are overwritten when the message is sent.
"""

import logging

from .message import Message

logger = logging.getLogger(__name__)


def parse(lines):
    """ Return a list of :class:`Message` instances, one for each template
        line in the iterable *lines*. A line that cannot be parsed raises
        ValueError identifying the line number.
    """

    templates = list()

    for number, line in enumerate(lines, 1):
        stripped = line.strip()

        if stripped == '' or stripped.startswith('#'):
            continue

        try:
            message = Message.parse(stripped)
        except ValueError as e:
            raise ValueError('template line %d: %s' % (number, e)) from e

        templates.append(message)

    return templates


def load(filename):
    """ Read and :func:`parse` the templates in *filename*.
    """

    with open(filename, 'r', encoding='utf-8') as file:
        templates = parse(file)

    logger.info("loaded %d templates from %s", len(templates), filename)
    return templates


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

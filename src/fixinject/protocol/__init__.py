from . import fields
from . import message
from . import codec
from . import template

from .message import Message
from .codec import decode, encode, FramingError, IncompleteFrame, ProtocolError


"""
fixinject Protocol Layer
========================

This package defines the tag=value messaging vocabulary and framing used
by fixinject. It provides the message model, the wire codec, and template
parsing.

The protocol layer MUST NOT depend on any transport implementation.

---------------------------------------------------------------------

Layer Overview
--------------

Templates (template.py)
    Line-delimited pre-built messages -> Message instances

Message Model (message.py)
    Ordered (tag, value) fields, lookup by tag

Codec (codec.py)
    Message <-> framed bytes
    - body length, checksum
    - frame boundaries inside a continuous stream

Field Vocabulary (fields.py)
    Canonical tag numbers and message types

---------------------------------------------------------------------

Below the Protocol Layer (for context)
--------------------------------------

Session Layer
    Logon, logout, sequence numbers, serialized writes

Demultiplexer
    The one reader; routes responses to pending requests

Transport Layer
    Moves bytes over TCP

---------------------------------------------------------------------
"""


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

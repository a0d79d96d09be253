""" Python implementation of fixinject: a client engine that injects
    pre-built tag=value (FIX) messages into a live session at a controlled
    rate, correlates each inbound response back to the message that
    triggered it, and reports per-message latency and outcome.
"""

# Utility components.

from . import json

# Submodules used by multiple other components.

from . import protocol
from . import config
from . import transport

# Primary public-facing interfaces.

from . import results
from . import scheduler
from . import heartbeat
from . import inject

from .config import ConnectionConfig, InjectionConfig
from .protocol import Message
from .inject import Injector, run

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

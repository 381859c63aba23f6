"""Host and process discovery used for metric namespaces and procline parsing."""

from __future__ import annotations

import socket
import sys


def short_hostname() -> str:
    """Return the host name up to the first dot, like ``hostname -s``."""
    return socket.gethostname().split(".", 1)[0]


def process_command_line() -> str:
    """The string a worker's number is parsed from when none is injected."""
    return " ".join(sys.argv)

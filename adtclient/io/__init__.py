"""
I/O layer for the ADT client.

The I/O layer is intentionally thin - it only handles HTTP transport.
Token, cookie and lock handling live in adtclient.session,
adtclient.executor and adtclient.locking; XML building and parsing in
adtclient.protocol.

Example:
    from adtclient.io import SyncIO

    with SyncIO(timeout=30) as io:
        response = io.send("GET", "https://host/sap/bc/adt/discovery", {})
"""

from .base import SyncIOProtocol
from .sync import SyncIO

__all__ = [
    # Protocols
    "SyncIOProtocol",
    # Implementations
    "SyncIO",
]

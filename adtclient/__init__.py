#!/usr/bin/env python
import logging

__version__ = "0.3.0"

from .adtclient import ADTClient
from .adtclient import get_adtclient
from .protocol.types import ADTRequest
from .protocol.types import ADTResponse
from .protocol.types import LockHandle
from .protocol.types import SessionType
from .protocol.xml_builders import build_xml
from .protocol.xml_parsers import parse_xml

## Silence notification of no default logging handler
log = logging.getLogger("adtclient")


class NullHandler(logging.Handler):
    def emit(self, record) -> None:
        pass


log.addHandler(NullHandler())

__all__ = [
    "__version__",
    "ADTClient",
    "ADTRequest",
    "ADTResponse",
    "LockHandle",
    "SessionType",
    "build_xml",
    "get_adtclient",
    "parse_xml",
]

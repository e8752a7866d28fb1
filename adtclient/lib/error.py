#!/usr/bin/env python
import logging
import os
from typing import Any
from typing import Optional

from adtclient import __version__

## Environmental variables prepended with "PYTHON_ADT" are used for debug purposes,
## environmental variables prepended with "SAP_" are for connection parameters
debug_dump_communication = os.environ.get("PYTHON_ADT_COMMDUMP", False)
## one of DEBUG, DEVELOPMENT, PRODUCTION
debugmode = os.environ.get("PYTHON_ADT_DEBUGMODE")
if not debugmode:
    if "dev" in __version__ or __version__ == "(unknown)":
        debugmode = "DEVELOPMENT"
    else:
        debugmode = "PRODUCTION"

log = logging.getLogger("adtclient")
if debugmode.startswith("DEBUG"):
    log.setLevel(logging.DEBUG)
else:
    log.setLevel(logging.WARNING)

BODY_SNIPPET_LENGTH = 1000


class ADTError(Exception):
    """
    Base class of everything the client raises.  ``kind`` is a stable
    identifier tool handlers can switch on; ``status`` and ``body``
    carry the raw backend status code and a snippet of the response
    body, since the backend error document is often the only clue.
    """

    kind: str = "adt_error"
    url: Optional[str] = None
    reason: str = "no reason"
    status: Optional[int] = None
    body: Optional[str] = None

    def __init__(
        self,
        url: Optional[str] = None,
        reason: Optional[str] = None,
        status: Optional[int] = None,
        body: Any = None,
    ) -> None:
        if url:
            self.url = url
        if reason:
            self.reason = reason
        if status is not None:
            self.status = status
        if body:
            self.body = _snippet(body)
        super().__init__(str(self))

    def __str__(self) -> str:
        ret = "%s at '%s', reason %s" % (
            self.__class__.__name__,
            self.url,
            self.reason,
        )
        if self.status is not None:
            ret += " (HTTP %i)" % self.status
        return ret

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "url": self.url,
            "reason": self.reason,
            "status": self.status,
            "body": self.body,
        }


class TokenUnavailable(ADTError):
    """
    The CSRF probe failed, returned no token, returned the value
    ``unsafe``, or the backend kept rejecting a freshly fetched token.
    """

    kind = "token_unavailable"


class AuthFailed(ADTError):
    """
    The backend answered 401, or 403 for a reason unrelated to the
    CSRF token.
    """

    kind = "auth_failed"


class LockConflict(ADTError):
    """The object is already locked by another user or session"""

    kind = "lock_conflict"


class LockFailed(ADTError):
    kind = "lock_failed"


class UnlockFailed(ADTError):
    """
    Releasing a lock failed.  This is never allowed to replace the
    error of the mutation that ran under the lock.
    """

    kind = "unlock_failed"


class TransportError(ADTError):
    """Timeouts, refused or reset connections, TLS failures"""

    kind = "transport_error"


class BackendError(ADTError):
    kind = "backend_error"


class NotFoundError(BackendError):
    kind = "not_found"


class XMLParseError(ADTError):
    kind = "xml_parse_error"


class ConfigurationError(ADTError):
    kind = "configuration_error"

    def __str__(self) -> str:
        return "%s: %s" % (self.__class__.__name__, self.reason)


def _snippet(body: Any) -> str:
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    return str(body)[:BODY_SNIPPET_LENGTH]


def from_response(response, url: Optional[str] = None) -> ADTError:
    """
    Build the error matching a non-successful response.  The backend
    message is extracted from the ADT exception document when there is
    one, otherwise the HTTP reason phrase is used.
    """
    from adtclient.protocol.xml_parsers import parse_error_message

    reason = parse_error_message(response.body) or response.reason
    if response.status in (401, 403):
        cls = AuthFailed
    elif response.status == 404:
        cls = NotFoundError
    else:
        cls = BackendError
    return cls(url=url, reason=reason, status=response.status, body=response.body)

"""
Core protocol types for the ADT client.

These dataclasses represent HTTP requests and responses at the protocol level,
independent of any I/O implementation.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Mapping

from requests.structures import CaseInsensitiveDict


class ADTMethod(Enum):
    """HTTP methods used against the ADT backend."""

    GET = "GET"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @property
    def idempotent(self) -> bool:
        """True for methods that are safe to send twice."""
        return self in (ADTMethod.GET, ADTMethod.HEAD, ADTMethod.OPTIONS)

    @property
    def mutating(self) -> bool:
        """True for methods the backend guards with a CSRF token."""
        return self in (ADTMethod.POST, ADTMethod.PUT, ADTMethod.PATCH, ADTMethod.DELETE)


class SessionType(Enum):
    """
    Value of the ``X-sap-adt-sessiontype`` header.  Stateful requests are
    pinned to one application server session, which is what keeps a lock
    alive between the LOCK call and the update using it.
    """

    STATEFUL = "stateful"
    STATELESS = "stateless"


class TokenState(Enum):
    UNSET = "unset"
    FETCHING = "fetching"
    VALID = "valid"
    INVALID = "invalid"


@dataclass(frozen=True)
class ADTRequest:
    """
    Represents an HTTP request to be made.

    This is a pure data structure with no I/O.  It describes what request
    should be made, but does not make it.

    Attributes:
        method: HTTP method
        path: Path relative to the ADT root (or a full URL)
        params: Query parameters
        headers: Caller supplied HTTP headers
        body: Request body (optional)
        session_type: Stateful/stateless hint, None to send no hint
        connection_id: Correlates a lock with the calls using it
        csrf: Attach a CSRF token even if the method does not require one
    """

    method: ADTMethod
    path: str
    params: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes | str | None = None
    session_type: SessionType | None = None
    connection_id: str | None = None
    csrf: bool = False

    @property
    def needs_csrf(self) -> bool:
        return self.csrf or self.method.mutating

    def with_header(self, name: str, value: str) -> "ADTRequest":
        """Return new request with additional header."""
        return replace(self, headers={**self.headers, name: value})

    def with_params(self, **params: str) -> "ADTRequest":
        """Return new request with additional query parameters."""
        return replace(self, params={**self.params, **params})

    def with_lock(self, lock: "LockHandle") -> "ADTRequest":
        """
        Return new request riding on a lock: the handle as query parameter,
        the connection id of the lock, and a stateful session.
        """
        return replace(
            self,
            params={**self.params, "lockHandle": lock.handle},
            session_type=SessionType.STATEFUL,
            connection_id=lock.connection_id,
        )


@dataclass(frozen=True)
class ADTResponse:
    """
    Represents an HTTP response received.

    Attributes:
        status: HTTP status code
        headers: HTTP headers, case insensitive
        body: Response body as bytes
        set_cookies: Every Set-Cookie header value, unmerged
    """

    status: int
    headers: Mapping[str, str] = field(default_factory=CaseInsensitiveDict)
    body: bytes = b""
    set_cookies: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.headers, CaseInsensitiveDict):
            object.__setattr__(self, "headers", CaseInsensitiveDict(self.headers))

    @property
    def ok(self) -> bool:
        """True if status indicates success (2xx)."""
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace") if self.body else ""

    @property
    def reason(self) -> str:
        """Return a reason phrase for the status code."""
        reasons = {
            200: "OK",
            201: "Created",
            204: "No Content",
            304: "Not Modified",
            400: "Bad Request",
            401: "Unauthorized",
            403: "Forbidden",
            404: "Not Found",
            405: "Method Not Allowed",
            406: "Not Acceptable",
            409: "Conflict",
            412: "Precondition Failed",
            415: "Unsupported Media Type",
            423: "Locked",
            500: "Internal Server Error",
            502: "Bad Gateway",
            503: "Service Unavailable",
        }
        return reasons.get(self.status, "Unknown")


@dataclass
class LockHandle:
    """
    An exclusive edit lock on one remote object.

    The handle is single use.  Once it has been released it must not be
    attached to another request; the client refuses to do so.

    Attributes:
        object_uri: URI of the locked object, relative to the ADT root
        handle: Opaque lock handle issued by the backend
        connection_id: Identifier shared by the LOCK call and the calls using it
        transport: Transport request the object is recorded on (CORRNR)
        owner: Owner of that transport request (CORRUSER)
        is_local: True for local ($TMP) objects
    """

    object_uri: str
    handle: str
    connection_id: str
    transport: str | None = None
    owner: str | None = None
    is_local: bool = False
    released: bool = False


@dataclass
class ActivationMessage:
    """
    One message of an activation run.

    Attributes:
        type: error, warning, info or success
        text: Message text
        uri: Object (and position) the message refers to, if given
        line: Source line, from ``line`` or the ``#start=line,column`` fragment
        column: Source column, from the ``#start=`` fragment
    """

    type: str
    text: str
    uri: str | None = None
    line: int | None = None
    column: int | None = None


@dataclass
class ActivationResult:
    success: bool = True
    messages: list[ActivationMessage] = field(default_factory=list)

    @property
    def errors(self) -> list[ActivationMessage]:
        return [x for x in self.messages if x.type == "error"]


@dataclass
class TransportRequest:
    """A change and transport system (CTS) request"""

    number: str
    description: str = ""
    owner: str = ""
    status: str = ""


@dataclass
class ObjectReference:
    """A repository object as returned by the object search"""

    uri: str
    name: str
    type: str = ""
    package: str | None = None

"""
The request pipeline every call rides on.

``RequestExecutor.execute`` turns an ADTRequest into headers and a URL,
attaches the CSRF token, the cookies, auth and the SAP headers, puts the
request on the wire through the I/O shell, feeds the response cookies
back into the session, and handles the two kinds of retry the backend
needs:

* a CSRF rejection is answered by refreshing the token and sending the
  same request once more, never twice
* connection failures are retried with exponential backoff, for
  idempotent methods only, so nothing gets created twice
"""
import datetime
import logging
import time
from enum import Enum
from typing import Callable, Optional
from urllib.parse import urlparse

import requests
from requests.structures import CaseInsensitiveDict

from adtclient import __version__
from adtclient.io.base import SyncIOProtocol
from adtclient.lib import error
from adtclient.lib import uri as urilib
from adtclient.lib.debug import masked_headers, xmlstring
from adtclient.lib.python_utilities import to_normal_str, to_wire
from adtclient.protocol.types import ADTMethod, ADTRequest, ADTResponse
from adtclient.session import Session

log = logging.getLogger("adtclient")

DISCOVERY_PATH = "/discovery"

## headers the pipeline owns.  Callers may override them, but it gets logged.
SESSION_HEADERS = frozenset(
    (
        "authorization",
        "cookie",
        "x-csrf-token",
        "sap-client",
        "sap-language",
        "x-sap-adt-sessiontype",
        "sap-adt-connection-id",
    )
)


class Outcome(Enum):
    """What to do with the result of one attempt"""

    SUCCESS = "success"
    CSRF_REJECTED = "csrf_rejected"


class RequestExecutor:
    """
    Executes ADTRequests against one backend Session.  This is the only
    place where requests are put on the wire.
    """

    def __init__(
        self,
        session: Session,
        io: SyncIOProtocol,
        max_retries: int = 3,
        backoff: float = 0.5,
        headers: Optional[dict] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Args:
          session: token, cookies and credentials
          io: the I/O shell sending the requests
          max_retries: extra attempts for idempotent requests failing on connection level
          backoff: first retry delay in seconds, doubled for every further retry
          headers: extra headers sent with every request
          sleep: used for the backoff delay
        """
        self.session = session
        self.io = io
        self.max_retries = max_retries
        self.backoff = backoff
        self.sleep = sleep
        self.headers = CaseInsensitiveDict(
            {
                "User-Agent": "python-adtclient/" + __version__,
                "Accept": "application/xml, application/atom+xml, text/plain, */*",
            }
        )
        self.headers.update(headers or {})

    def url_for(self, request: ADTRequest) -> str:
        if urlparse(request.path).scheme:
            url = request.path
        else:
            url = self.session.base_url + urilib.normalize_uri(request.path or "/")
        return urilib.with_query(url, dict(request.params))

    def execute(self, request: ADTRequest) -> ADTResponse:
        """
        Send the request and return the response, whatever its status.

        Raises:
            TokenUnavailable: no usable CSRF token could be had, or the backend
                rejected a freshly fetched one
            TransportError: on connection level failures
        """
        url = self.url_for(request)
        body = to_wire(request.body)
        response = None
        ## the first attempt may use a cached token, the second one always
        ## gets a fresh token, and there is no third
        for attempt in ("cached", "refreshed"):
            token = self._ensure_token() if request.needs_csrf else None
            response = self._send(request, url, body, token)
            if self._classify(request, response) is Outcome.SUCCESS:
                return response
            log.info(
                "CSRF token rejected on %s %s (%s token)"
                % (request.method.value, url, attempt)
            )
            self.session.csrf.invalidate()
        raise error.TokenUnavailable(
            url=url,
            reason="CSRF token rejected after refresh",
            status=response.status,
            body=response.body,
        )

    def _classify(self, request: ADTRequest, response: ADTResponse) -> Outcome:
        if request.needs_csrf and is_csrf_rejection(response):
            return Outcome.CSRF_REJECTED
        return Outcome.SUCCESS

    def _ensure_token(self) -> str:
        return self.session.csrf.ensure(self._probe, url=self.session.base_url + DISCOVERY_PATH)

    def _probe(self) -> ADTResponse:
        probe = ADTRequest(
            method=ADTMethod.GET,
            path=DISCOVERY_PATH,
            headers={"X-CSRF-Token": "Fetch", "Accept": "application/atomsvc+xml"},
        )
        return self._send(probe, self.url_for(probe), None, None)

    def build_headers(self, request: ADTRequest, token: Optional[str] = None) -> CaseInsensitiveDict:
        headers = self.headers.copy()
        auth = self.session.auth_header
        if auth:
            headers["Authorization"] = auth
        if self.session.client:
            headers["sap-client"] = self.session.client
        if self.session.language:
            headers["sap-language"] = self.session.language
        cookies = self.session.cookies.header()
        if cookies:
            headers["Cookie"] = cookies
        if token:
            headers["X-CSRF-Token"] = token
        if request.session_type is not None:
            headers["X-sap-adt-sessiontype"] = request.session_type.value
        if request.connection_id:
            headers["sap-adt-connection-id"] = request.connection_id
        if request.body and "Content-Type" not in request.headers:
            headers["Content-Type"] = "application/xml"

        for key, value in request.headers.items():
            if key.lower() in SESSION_HEADERS and key in headers and headers[key] != value:
                log.warning("caller overrides the %s header of %s" % (key, request.path))
            headers[key] = value
        return headers

    def _send(
        self,
        request: ADTRequest,
        url: str,
        body: Optional[bytes],
        token: Optional[str],
    ) -> ADTResponse:
        attempts = 1 + (self.max_retries if request.method.idempotent else 0)
        for attempt in range(attempts):
            ## rebuilt for every attempt, cookies may have changed
            headers = self.build_headers(request, token)
            log.debug(
                "sending request - method={0}, url={1}, headers={2}\nbody:\n{3}".format(
                    request.method.value,
                    url,
                    masked_headers(headers),
                    to_normal_str(body),
                )
            )
            try:
                response = self.io.send(request.method.value, url, headers, body)
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                if attempt + 1 >= attempts:
                    raise error.TransportError(url=url, reason=str(e)) from e
                delay = self.backoff * 2**attempt
                log.warning(
                    "%s %s failed (%s), retrying in %.1fs (%i/%i)"
                    % (request.method.value, url, e, delay, attempt + 1, self.max_retries)
                )
                self.sleep(delay)
                continue
            except requests.exceptions.RequestException as e:
                raise error.TransportError(url=url, reason=str(e)) from e

            log.debug("server responded with %i %s" % (response.status, response.reason))
            if response.body and log.isEnabledFor(logging.DEBUG):
                log.debug(xmlstring(response.body))
            self.session.cookies.update(response.set_cookies)
            if error.debug_dump_communication:
                dump_communication(request.method.value, url, headers, body, response)
            return response


def is_csrf_rejection(response: ADTResponse) -> bool:
    """
    The backend answers a missing or stale token with 403 and
    ``x-csrf-token: Required``; some releases only say so in the body.
    """
    if response.status != 403:
        return False
    if (response.headers.get("x-csrf-token") or "").strip().lower() == "required":
        return True
    return b"csrf" in (response.body or b"").lower()


def dump_communication(method: str, url: str, headers, body, response: ADTResponse) -> None:
    from tempfile import NamedTemporaryFile

    with NamedTemporaryFile(prefix="adtcomm", delete=False) as commlog:
        commlog.write(b"=" * 80 + b"\n")
        commlog.write(f"{datetime.datetime.now():%FT%H:%M:%S}".encode("utf-8"))
        commlog.write(b"\n====>\n")
        commlog.write(f"{method} {url}\n".encode("utf-8"))
        masked = masked_headers(headers)
        commlog.write(b"\n".join(to_wire(f"{x}: {masked[x]}") for x in masked))
        commlog.write(b"\n\n")
        commlog.write(body or b"")
        commlog.write(b"<====\n")
        commlog.write(f"{response.status} {response.reason}\n".encode("utf-8"))
        masked = masked_headers(response.headers)
        commlog.write(
            b"\n".join(to_wire(f"{x}: {masked[x]}") for x in masked)
        )
        commlog.write(b"\n\n")
        commlog.write(response.body or b"")
        commlog.write(b"\n")

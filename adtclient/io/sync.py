"""
Synchronous I/O implementation using the requests library.
"""

from http import cookiejar
from typing import Mapping, Optional, Union

import requests

from adtclient.protocol.types import ADTResponse


class BlockAll(cookiejar.CookiePolicy):
    """
    Keeps the requests session from collecting cookies on its own.  The
    client Session owns the cookies and sends them explicitly, two cookie
    stores fighting over the session id is how locks get lost.
    """

    return_ok = set_ok = domain_return_ok = path_return_ok = lambda self, *args, **kwargs: False
    netscape = True
    rfc2965 = hide_cookie2 = False


def set_cookie_headers(response: requests.Response) -> tuple[str, ...]:
    """
    Every Set-Cookie header of the response.  ``response.headers`` folds
    repeated headers into one comma separated value, which can't be split
    safely because of the comma in ``Expires`` dates.
    """
    raw_headers = getattr(response.raw, "headers", None)
    if raw_headers is not None and hasattr(raw_headers, "getlist"):
        return tuple(raw_headers.getlist("Set-Cookie"))
    value = response.headers.get("Set-Cookie")
    return (value,) if value else ()


class SyncIO:
    """
    Synchronous I/O shell using the requests library.

    This is a thin wrapper that puts prepared requests on the wire and
    returns ADTResponse objects.

    Example:
        io = SyncIO(timeout=30, verify=False)
        response = io.send("GET", "https://host/sap/bc/adt/discovery", headers)
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        verify: Union[bool, str] = True,
        cert: Union[str, tuple[str, str], None] = None,
    ):
        """
        Initialize the sync I/O handler.

        Args:
            session: Existing requests Session to use (creates new if None)
            timeout: Request timeout in seconds
            verify: Verify SSL certificates, or path to a CA bundle
            cert: Client certificate
        """
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.session.cookies.set_policy(BlockAll())
        ## proxies and .netrc are still honored through the environment
        self.timeout = timeout
        self.verify = verify
        self.cert = cert

    def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[bytes] = None,
    ) -> ADTResponse:
        """
        Send a request and return ADTResponse.

        Raises:
            requests.exceptions.RequestException: on connection level failures
        """
        response = self.session.request(
            method=method,
            url=url,
            headers=dict(headers),
            data=body,
            timeout=self.timeout,
            verify=self.verify,
            cert=self.cert,
            allow_redirects=False,
        )

        return ADTResponse(
            status=response.status_code,
            headers=response.headers,
            body=response.content or b"",
            set_cookies=set_cookie_headers(response),
        )

    def close(self) -> None:
        """Close the session if we created it."""
        if self._owns_session and self.session:
            self.session.close()

    def __enter__(self) -> "SyncIO":
        """Context manager entry."""
        return self

    def __exit__(self, *args) -> None:
        """Context manager exit."""
        self.close()

"""
Process lifetime state of one backend connection.

The backend ties the CSRF token to the session cookie it issues together
with it, and ties locks to the application server session behind that
cookie.  Both therefore live in one explicit ``Session`` object owned by
the client, with one lock serializing every state transition.
"""
import base64
import logging
import threading
from typing import Callable, Iterable, Optional

from adtclient.lib import error
from adtclient.lib.debug import mask
from adtclient.protocol.types import ADTResponse, TokenState

log = logging.getLogger("adtclient")


class CookieStore:
    """
    The session cookies, one value per cookie name, last write wins.

    Attributes, expiry and domain are dropped; cookies live as long as
    the process.
    """

    def __init__(self, lock: Optional[threading.RLock] = None) -> None:
        self._lock = lock or threading.RLock()
        self._cookies: dict[str, str] = {}

    def update(self, set_cookie_headers: Iterable[str]) -> None:
        """
        Merge ``Set-Cookie`` header values into the store.  A cookie that
        is set again moves to the end.
        """
        with self._lock:
            for header in set_cookie_headers or ():
                pair = header.split(";", 1)[0].strip()
                if "=" not in pair:
                    continue
                name, value = pair.split("=", 1)
                name = name.strip()
                if not name:
                    continue
                self._cookies.pop(name, None)
                self._cookies[name] = value.strip()

    def header(self) -> str:
        """Value for the ``Cookie`` request header"""
        with self._lock:
            return "; ".join("%s=%s" % (k, v) for k, v in self._cookies.items())

    def get(self, name: str) -> Optional[str]:
        with self._lock:
            return self._cookies.get(name)

    def clear(self) -> None:
        with self._lock:
            self._cookies.clear()

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._cookies

    def __len__(self) -> int:
        with self._lock:
            return len(self._cookies)


class CsrfTokenManager:
    """
    Owns the anti-forgery token.

    State machine: UNSET -> FETCHING -> VALID, VALID -> INVALID on a
    rejected request, INVALID -> FETCHING -> VALID on the next ``ensure``.
    A failed fetch falls back to the state it started from.
    """

    def __init__(self, lock: Optional[threading.RLock] = None) -> None:
        self._lock = lock or threading.RLock()
        self._token: Optional[str] = None
        self._state = TokenState.UNSET

    @property
    def state(self) -> TokenState:
        return self._state

    @property
    def token(self) -> Optional[str]:
        return self._token if self._state is TokenState.VALID else None

    def ensure(self, fetch: Callable[[], ADTResponse], url: Optional[str] = None) -> str:
        """
        Return a valid token, fetching one if needed.

        Args:
            fetch: Performs the ``X-CSRF-Token: Fetch`` probe and returns
                the response.  Only called when there is no valid token.
                Storing the probe cookies is up to the caller.
            url: Probe URL, used in error messages

        Raises:
            TokenUnavailable: If the probe fails or the backend hands out no
                usable token (missing, empty or ``unsafe``)
            AuthFailed: If the probe is answered with 401
        """
        ## holding the lock through the probe keeps concurrent callers
        ## from firing parallel probes
        with self._lock:
            if self._state is TokenState.VALID:
                return self._token
            previous = self._state
            self._state = TokenState.FETCHING
            try:
                token = self._fetch(fetch, url)
            except BaseException:
                self._state = previous
                raise
            self._token = token
            self._state = TokenState.VALID
            log.debug("CSRF token fetched: %s" % mask(token))
            return token

    def _fetch(self, fetch: Callable[[], ADTResponse], url: Optional[str]) -> str:
        log.debug("fetching CSRF token")
        response = fetch()
        if response.status == 401:
            raise error.AuthFailed(
                url=url, reason="CSRF probe rejected", status=401, body=response.body
            )
        if not response.ok:
            raise error.TokenUnavailable(
                url=url,
                reason="CSRF probe failed",
                status=response.status,
                body=response.body,
            )
        token = response.headers.get("x-csrf-token")
        if not token or token.strip().lower() == "unsafe":
            log.error("Invalid CSRF token received: %s" % token)
            raise error.TokenUnavailable(
                url=url,
                reason="backend returned no usable CSRF token (%r)" % token,
                status=response.status,
            )
        return token.strip()

    def invalidate(self) -> None:
        with self._lock:
            if self._state is not TokenState.UNSET or self._token:
                log.debug("CSRF token invalidated")
            self._token = None
            self._state = TokenState.INVALID


class Session:
    """
    State of one backend connection: where it is, who we are, and the
    token and cookies the backend issued to us.

    Attributes:
        base_url: Scheme, host, port and ADT root
        username: User for Basic authentication
        password: Password for Basic authentication
        client: SAP client (mandant), sent as ``sap-client``
        language: Logon language, sent as ``sap-language``
        cookies: The CookieStore
        csrf: The CsrfTokenManager
    """

    def __init__(
        self,
        base_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client: Optional[str] = None,
        language: Optional[str] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.client = client
        self.language = language
        self.lock = threading.RLock()
        self.cookies = CookieStore(self.lock)
        self.csrf = CsrfTokenManager(self.lock)

    @property
    def auth_header(self) -> Optional[str]:
        """Basic auth header if credentials are configured"""
        if self.username is None or self.password is None:
            return None
        credentials = "%s:%s" % (self.username, self.password)
        encoded = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
        return "Basic %s" % encoded

    def reset(self) -> None:
        """Forget token and cookies, the next call starts a new backend session"""
        with self.lock:
            self.csrf.invalidate()
            self.cookies.clear()

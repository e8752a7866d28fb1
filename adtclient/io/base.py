"""
Abstract I/O protocol definition.

This module defines the interface that all I/O implementations must follow.
"""

from typing import Mapping, Optional, Protocol, runtime_checkable

from adtclient.protocol.types import ADTResponse


@runtime_checkable
class SyncIOProtocol(Protocol):
    """
    Protocol defining the synchronous I/O interface.

    Implementations put one fully prepared request on the wire and return
    the ADTResponse.  Connection level failures are raised as
    ``requests.exceptions.ConnectionError`` / ``Timeout`` (or subclasses);
    the executor decides about retries.
    """

    def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[bytes] = None,
    ) -> ADTResponse:
        """
        Send a request and return the response.

        Args:
            method: HTTP method
            url: Full URL including the query string
            headers: Final request headers
            body: Request body

        Returns:
            ADTResponse with status, headers, body and Set-Cookie values
        """
        ...

    def close(self) -> None:
        """Close any resources (e.g., HTTP session)."""
        ...

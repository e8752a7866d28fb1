"""
Tests for the request pipeline: header assembly, the CSRF retry and the
transport retry policy.
"""

import logging
import tempfile
from unittest.mock import Mock

import pytest
import requests

from adtclient.executor import is_csrf_rejection
from adtclient.lib import error
from adtclient.protocol.types import ADTMethod, ADTRequest, ADTResponse, SessionType, TokenState

from fixture_helpers import FakeBackend, exception_response, make_client


def post(path="/activation", body="<x/>"):
    return ADTRequest(method=ADTMethod.POST, path=path, body=body)


class TestHeaders:
    """Test RequestExecutor.build_headers."""

    def test_session_headers(self):
        """Auth, client and language go on every request."""
        client, backend = make_client()
        client.get("/discovery")
        headers = backend.requests[0].headers
        assert headers["Authorization"].startswith("Basic ")
        assert headers["sap-client"] == "001"
        assert headers["sap-language"] == "EN"
        assert headers["User-Agent"].startswith("python-adtclient/")
        assert "X-CSRF-Token" not in headers
        assert "X-sap-adt-sessiontype" not in headers

    def test_get_needs_no_token(self):
        """Reads do not trigger a CSRF probe."""
        client, backend = make_client()
        client.get("/discovery")
        assert backend.probes == []
        assert client.session.csrf.state is TokenState.UNSET

    def test_mutating_request_carries_token_and_cookies(self):
        client, backend = make_client()
        client.request(post())
        request = backend.calls[0]
        assert request.headers["X-CSRF-Token"] == backend.token
        assert "SAP_SESSIONID_A4H_001=session1" in request.headers["Cookie"]
        assert "sap-usercontext=sap-client=001" in request.headers["Cookie"]
        assert request.headers["Content-Type"] == "application/xml"

    def test_cookies_are_stored_once_per_response(self):
        """The probe cookies go through the same path as every other response."""
        client, backend = make_client()
        update = Mock(wraps=client.session.cookies.update)
        client.session.cookies.update = update
        client.request(post())
        assert update.call_count == len(backend.requests) == 2
        assert "SAP_SESSIONID_A4H_001=session1" in update.call_args_list[0].args[0][0]

    def test_session_type_and_connection_id(self):
        client, _ = make_client()
        request = ADTRequest(
            method=ADTMethod.GET,
            path="/x",
            session_type=SessionType.STATEFUL,
            connection_id="abc",
        )
        headers = client.executor.build_headers(request)
        assert headers["X-sap-adt-sessiontype"] == "stateful"
        assert headers["sap-adt-connection-id"] == "abc"

    def test_caller_content_type_is_kept(self):
        client, _ = make_client()
        request = ADTRequest(
            method=ADTMethod.PUT,
            path="/x",
            body="REPORT z.",
            headers={"Content-Type": "text/plain; charset=utf-8"},
        )
        headers = client.executor.build_headers(request, "tok")
        assert headers["Content-Type"] == "text/plain; charset=utf-8"

    def test_session_header_override_is_logged(self, caplog):
        """Overriding a session critical header is allowed, but not silently."""
        client, _ = make_client()
        request = ADTRequest(method=ADTMethod.GET, path="/x", headers={"sap-client": "999"})
        with caplog.at_level(logging.WARNING, logger="adtclient"):
            headers = client.executor.build_headers(request)
        assert headers["sap-client"] == "999"
        assert "sap-client" in caplog.text

    def test_harmless_header_override_is_not_logged(self, caplog):
        client, _ = make_client()
        request = ADTRequest(method=ADTMethod.GET, path="/x", headers={"Accept": "text/plain"})
        with caplog.at_level(logging.WARNING, logger="adtclient"):
            headers = client.executor.build_headers(request)
        assert headers["Accept"] == "text/plain"
        assert caplog.records == []

    def test_url_for(self):
        client, _ = make_client()
        request = ADTRequest(
            method=ADTMethod.GET,
            path="/sap/bc/adt/programs/programs/z_report",
            params={"version": "active"},
        )
        assert (
            client.executor.url_for(request)
            == "https://sap.example.com:44300/sap/bc/adt/programs/programs/z_report?version=active"
        )


class TestCsrfRetry:
    """A CSRF rejection is answered by exactly one refresh and retry."""

    def test_token_fetched_lazily(self):
        client, backend = make_client()
        client.request(post())
        assert [x.method for x in backend.requests] == ["GET", "POST"]
        assert backend.requests[0].path == "/discovery"

    def test_token_reused(self):
        client, backend = make_client()
        client.request(post())
        client.request(post())
        assert len(backend.probes) == 1

    def test_stale_token_is_refreshed_once(self):
        client, backend = make_client()
        client.request(post())
        stale = client.session.csrf.token
        backend.expire_token()

        response = client.request(post())

        assert response.status == 200
        assert len(backend.probes) == 2
        assert len(backend.calls) == 3
        assert backend.calls[1].headers["X-CSRF-Token"] == stale
        assert backend.calls[2].headers["X-CSRF-Token"] == backend.token
        assert client.session.csrf.token == backend.token

    def test_second_rejection_fails(self):
        """A freshly fetched token that is rejected again is not retried."""
        client, backend = make_client()
        backend.reject_csrf = True
        with pytest.raises(error.TokenUnavailable) as excinfo:
            client.request(post())
        assert excinfo.value.status == 403
        assert len(backend.calls) == 2
        assert len(backend.probes) == 2

    def test_other_403_is_not_retried(self):
        client, backend = make_client()
        backend.responses[("POST", "/activation")] = exception_response(403, "No authorization")
        with pytest.raises(error.AuthFailed) as excinfo:
            client.request(post())
        assert excinfo.value.reason == "No authorization"
        assert len(backend.calls) == 1

    def test_unsafe_token(self):
        client, backend = make_client()
        backend.probe_token = "unsafe"
        with pytest.raises(error.TokenUnavailable):
            client.request(post())
        assert backend.calls == []

    def test_probe_unauthorized(self):
        client, backend = make_client()
        backend.probe_status = 401
        with pytest.raises(error.AuthFailed):
            client.request(post())

    @pytest.mark.parametrize(
        "response,expected",
        [
            (ADTResponse(status=403, headers={"X-CSRF-Token": "Required"}), True),
            (ADTResponse(status=403, headers={"x-csrf-token": " required "}), True),
            (ADTResponse(status=403, body=b"CSRF token validation failed"), True),
            (ADTResponse(status=403, body=b"No authorization"), False),
            (ADTResponse(status=401, headers={"x-csrf-token": "Required"}), False),
            (ADTResponse(status=200, headers={"x-csrf-token": "Required"}), False),
        ],
    )
    def test_is_csrf_rejection(self, response, expected):
        assert is_csrf_rejection(response) is expected


class TestTransportRetry:
    """Connection failures are retried for idempotent requests only."""

    def test_get_is_retried_with_backoff(self):
        client, backend = make_client()
        delays = []
        client.executor.sleep = delays.append
        backend.failures = [
            requests.exceptions.ConnectionError("reset"),
            requests.exceptions.Timeout("slow"),
        ]
        response = client.get("/discovery")
        assert response.status == 200
        assert len(backend.requests) == 3
        assert delays == [0.5, 1.0]

    def test_get_gives_up(self):
        client, backend = make_client(max_retries=2)
        backend.failures = [requests.exceptions.ConnectionError("refused")] * 3
        with pytest.raises(error.TransportError) as excinfo:
            client.get("/discovery")
        assert "refused" in excinfo.value.reason
        assert len(backend.requests) == 3

    def test_post_is_not_retried(self):
        client, backend = make_client()
        client.request(post())
        sent = len(backend.requests)
        backend.failures = [requests.exceptions.ConnectionError("reset")]
        with pytest.raises(error.TransportError):
            client.request(post())
        assert len(backend.requests) == sent + 1

    def test_other_request_errors_are_not_retried(self):
        client, backend = make_client()
        backend.failures = [requests.exceptions.InvalidHeader("bad header")]
        with pytest.raises(error.TransportError):
            client.get("/discovery")
        assert len(backend.requests) == 1

    def test_max_retries_zero(self):
        client, backend = make_client(max_retries=0)
        backend.failures = [requests.exceptions.ConnectionError("reset")]
        with pytest.raises(error.TransportError):
            client.get("/discovery")
        assert len(backend.requests) == 1


class TestCommunicationDump:
    def test_secrets_are_masked(self, monkeypatch, tmp_path):
        monkeypatch.setattr(error, "debug_dump_communication", True)
        monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
        client, backend = make_client()
        client.request(post())
        dumps = list(tmp_path.glob("adtcomm*"))
        assert len(dumps) == 2
        content = b"".join(x.read_bytes() for x in dumps)
        assert b"POST https://sap.example.com:44300/sap/bc/adt/activation" in content
        assert backend.token.encode() not in content
        assert b"session1" not in content
        assert b"Basic ****" in content


def test_fake_backend_is_an_io_shell():
    from adtclient.io.base import SyncIOProtocol

    assert isinstance(FakeBackend(), SyncIOProtocol)

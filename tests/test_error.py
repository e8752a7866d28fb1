import pytest

from adtclient.lib import error
from adtclient.protocol.types import ADTResponse

from fixture_helpers import exception_response


class TestErrors:
    def test_str(self):
        e = error.LockFailed(url="https://h/sap/bc/adt/x", reason="boom", status=500)
        assert str(e) == "LockFailed at 'https://h/sap/bc/adt/x', reason boom (HTTP 500)"

    def test_defaults(self):
        e = error.BackendError()
        assert e.reason == "no reason"
        assert e.status is None
        assert e.body is None

    def test_body_snippet(self):
        e = error.BackendError(body=b"x" * 5000)
        assert len(e.body) == error.BODY_SNIPPET_LENGTH

    @pytest.mark.parametrize(
        "cls,kind",
        [
            (error.TokenUnavailable, "token_unavailable"),
            (error.AuthFailed, "auth_failed"),
            (error.LockConflict, "lock_conflict"),
            (error.LockFailed, "lock_failed"),
            (error.UnlockFailed, "unlock_failed"),
            (error.TransportError, "transport_error"),
            (error.BackendError, "backend_error"),
            (error.NotFoundError, "not_found"),
            (error.XMLParseError, "xml_parse_error"),
            (error.ConfigurationError, "configuration_error"),
        ],
    )
    def test_kinds(self, cls, kind):
        e = cls(reason="x")
        assert isinstance(e, error.ADTError)
        assert e.kind == kind
        assert e.to_dict()["kind"] == kind

    def test_configuration_error_str(self):
        assert str(error.ConfigurationError(reason="SAP_HOST missing")) == "ConfigurationError: SAP_HOST missing"


class TestFromResponse:
    @pytest.mark.parametrize(
        "status,cls",
        [
            (401, error.AuthFailed),
            (403, error.AuthFailed),
            (404, error.NotFoundError),
            (400, error.BackendError),
            (500, error.BackendError),
        ],
    )
    def test_class(self, status, cls):
        e = error.from_response(ADTResponse(status=status), "https://h/x")
        assert type(e) is cls
        assert e.status == status
        assert e.url == "https://h/x"

    def test_backend_message(self):
        e = error.from_response(exception_response(400, "Program Z_REPORT does not exist"))
        assert e.reason == "Program Z_REPORT does not exist"
        assert "Program Z_REPORT" in e.body

    def test_reason_phrase_fallback(self):
        e = error.from_response(ADTResponse(status=500, body=b"<html>dump</html>"))
        assert e.reason == "Internal Server Error"
        assert e.body == "<html>dump</html>"

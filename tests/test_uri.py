import pytest

from adtclient.lib import uri


class TestNormalize:
    @pytest.mark.parametrize(
        "given,expected",
        [
            ("/programs/programs/z_report", "/programs/programs/z_report"),
            ("programs/programs/z_report", "/programs/programs/z_report"),
            ("/sap/bc/adt/programs/programs/z_report", "/programs/programs/z_report"),
            ("https://host:44300/sap/bc/adt/programs/programs/z_report", "/programs/programs/z_report"),
            ("/sap/bc/adt/discovery?x=1", "/discovery?x=1"),
            ("/sap/bc/adt", "/"),
            ("/sap/bc/adtx/foo", "/sap/bc/adtx/foo"),
        ],
    )
    def test_normalize_uri(self, given, expected):
        assert uri.normalize_uri(given) == expected

    def test_empty(self):
        with pytest.raises(ValueError):
            uri.normalize_uri("")

    def test_full_uri(self):
        assert uri.full_uri("/oo/classes/zcl_x") == "/sap/bc/adt/oo/classes/zcl_x"
        assert uri.full_uri("/sap/bc/adt/oo/classes/zcl_x") == "/sap/bc/adt/oo/classes/zcl_x"


class TestObjectUris:
    def test_lock_uri(self):
        assert uri.lock_uri("/programs/programs/z_report/source/main") == "/programs/programs/z_report"
        assert uri.lock_uri("/oo/classes/zcl_x/includes/testclasses") == "/oo/classes/zcl_x/includes/testclasses"
        assert uri.lock_uri("/programs/programs/z_report/") == "/programs/programs/z_report"

    def test_source_uri(self):
        assert uri.source_uri("/programs/programs/z_report") == "/programs/programs/z_report/source/main"
        assert uri.source_uri("/programs/programs/z_report/source/main") == "/programs/programs/z_report/source/main"

    def test_namespaced_name(self):
        assert uri.encode_object_name("/SMB98/PARAMS") == "%2Fsmb98%2Fparams"
        assert uri.object_uri("/oo/classes/", "/SMB98/CL_X") == "/oo/classes/%2Fsmb98%2Fcl_x"

    @pytest.mark.parametrize(
        "given,expected",
        [
            ("/programs/programs/z_report", "PROG/P"),
            ("/programs/includes/z_inc/source/main", "PROG/I"),
            ("/oo/classes/zcl_x", "CLAS/OC"),
            ("/oo/interfaces/zif_x", "INTF/OI"),
            ("/functions/groups/zfg/fmodules/z_fm", "FUGR/FF"),
            ("/functions/groups/zfg", "FUGR/F"),
            ("/ddic/tables/ztab", "TABL/DT"),
            ("/ddic/ddl/sources/zddl", "DDLS/DF"),
            ("/something/else", "UNKN/XX"),
        ],
    )
    def test_object_type(self, given, expected):
        assert uri.object_type(given) == expected

    def test_object_name(self):
        assert uri.object_name("/sap/bc/adt/oo/classes/zcl_x/source/main") == "zcl_x"

    def test_lock_accept_header(self):
        assert uri.lock_accept_header("/ddic/tables/ztab") == "application/vnd.sap.as+xml"
        assert "oo.classes" in uri.lock_accept_header("/oo/classes/zcl_x")
        assert uri.lock_accept_header("/unknown/x") == uri.DEFAULT_LOCK_ACCEPT


def test_base_url():
    assert uri.base_url("host", 44300) == "https://host:44300/sap/bc/adt"
    assert uri.base_url("host", None, https=False) == "http://host/sap/bc/adt"


def test_with_query():
    assert uri.with_query("/x", {}) == "/x"
    assert uri.with_query("/x", {"a": "1", "b": "x y"}) == "/x?a=1&b=x+y"
    assert uri.with_query("/x?a=1", {"b": "2"}) == "/x?a=1&b=2"

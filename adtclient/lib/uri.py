#!/usr/bin/env python
"""
Helpers for the object URIs handed around by tool handlers.

Addresses may be given in two shapes:

1) a path relative to the ADT root, i.e. "/programs/programs/z_report"
   refers to "https://host:44300/sap/bc/adt/programs/programs/z_report"

2) an absolute path including the root, i.e.
   "/sap/bc/adt/programs/programs/z_report", as the backend itself
   writes them into ``adtcore:uri`` attributes.

All functions below accept both and return the first shape.
"""
from typing import Dict
from typing import Optional
from typing import Tuple
from urllib.parse import quote
from urllib.parse import urlencode
from urllib.parse import urlparse

ADT_ROOT = "/sap/bc/adt"

## collection path fragment -> ADT object type.  Order matters, the
## first match wins (function modules live below function groups).
OBJECT_TYPES: Tuple[Tuple[str, str], ...] = (
    ("/ddic/domains/", "DOMA/DD"),
    ("/ddic/dataelements/", "DTEL/DE"),
    ("/ddic/tables/", "TABL/DT"),
    ("/ddic/structures/", "STRU/I"),
    ("/ddic/tabletypes/", "TTYP/DA"),
    ("/oo/classes/", "CLAS/OC"),
    ("/oo/interfaces/", "INTF/OI"),
    ("/programs/programs/", "PROG/P"),
    ("/programs/includes/", "PROG/I"),
    ("/fmodules/", "FUGR/FF"),
    ("/functions/groups/", "FUGR/F"),
    ("/ddic/ddl/sources/", "DDLS/DF"),
    ("/ddls/sources/", "DDLS/DF"),
    ("/ddic/srvd/sources/", "SRVD/SRV"),
    ("/srvd/sources/", "SRVD/SRV"),
    ("/businessservices/bindings/", "SRVB/SVB"),
    ("/srvb/sources/", "SRVB/SVB"),
)
UNKNOWN_OBJECT_TYPE = "UNKN/XX"

## Lock calls are picky about Accept.  DDIC objects only accept the
## generic asx document, the rest want their vendor media type.
LOCK_ACCEPT: Dict[str, str] = {
    "/ddic/": "application/vnd.sap.as+xml",
    "/oo/classes/": "application/vnd.sap.adt.oo.classes.v4+xml, application/vnd.sap.adt.oo.classes.v2+xml, application/xml, */*",
    "/oo/interfaces/": "application/vnd.sap.adt.oo.interfaces.v4+xml, application/vnd.sap.adt.oo.interfaces.v2+xml, application/xml, */*",
    "/programs/": "application/vnd.sap.adt.programs.programs.v2+xml, application/xml, */*",
    "/functions/": "application/vnd.sap.adt.functions.v3+xml, application/vnd.sap.adt.functions.v2+xml, application/xml, */*",
    "/ddls/": "application/vnd.sap.adt.ddls.v1+xml, application/xml, */*",
}
DEFAULT_LOCK_ACCEPT = "application/vnd.sap.adt.repository.object.v1+xml, application/xml, application/atom+xml, */*"


def base_url(host: str, port: Optional[int] = None, https: bool = True) -> str:
    scheme = "https" if https else "http"
    portpart = ":%i" % port if port else ""
    return "%s://%s%s%s" % (scheme, host, portpart, ADT_ROOT)


def normalize_uri(uri: str) -> str:
    """
    Strips scheme, host and the ADT root from an object URI so that it
    can be joined with the client base URL without duplicating the root.
    """
    if not uri:
        raise ValueError("URI cannot be empty")
    parsed = urlparse(uri)
    if parsed.scheme:
        uri = parsed.path
        if parsed.query:
            uri += "?" + parsed.query
    if uri == ADT_ROOT or uri.startswith(ADT_ROOT + "/") or uri.startswith(ADT_ROOT + "?"):
        uri = uri[len(ADT_ROOT) :]
    if not uri.startswith("/"):
        uri = "/" + uri
    return uri


def full_uri(uri: str) -> str:
    """The absolute form, as used inside request bodies"""
    return ADT_ROOT + normalize_uri(uri)


def lock_uri(uri: str) -> str:
    """
    Locks are taken on the object, not on one of its source parts:
    ``/programs/programs/z_report/source/main`` locks
    ``/programs/programs/z_report``.
    """
    uri = normalize_uri(uri)
    if "/source/" in uri:
        uri = uri.split("/source/")[0]
    return uri.rstrip("/") or "/"


def source_uri(uri: str) -> str:
    uri = normalize_uri(uri).rstrip("/")
    if uri.endswith("/source/main"):
        return uri
    return uri + "/source/main"


def encode_object_name(name: str) -> str:
    """
    ABAP object names go lower case into URIs, and namespaced names
    like ``/SMB98/PARAMS`` need their slashes escaped.
    """
    return quote(name.lower(), safe="")


def object_uri(collection: str, name: str) -> str:
    return "%s/%s" % (normalize_uri(collection).rstrip("/"), encode_object_name(name))


def object_name(uri: str) -> str:
    path = lock_uri(uri)
    return path.rstrip("/").split("/")[-1]


def object_type(uri: str) -> str:
    path = lock_uri(uri) + "/"
    for fragment, adt_type in OBJECT_TYPES:
        if fragment in path:
            return adt_type
    return UNKNOWN_OBJECT_TYPE


def lock_accept_header(uri: str) -> str:
    path = lock_uri(uri) + "/"
    for prefix, accept in LOCK_ACCEPT.items():
        if path.startswith(prefix):
            return accept
    return DEFAULT_LOCK_ACCEPT


def with_query(path: str, params: Optional[Dict[str, str]]) -> str:
    if not params:
        return path
    sep = "&" if "?" in path else "?"
    return path + sep + urlencode(params)

"""
Pure functions for building ADT XML request bodies.

All functions in this module are pure - they take data in and return XML out,
with no side effects or I/O.

Documents are described as nested mappings, the same shape tool handlers
already use for their payloads:

    {
        "adtcore:objectReferences": {
            "@_xmlns:adtcore": "http://www.sap.com/adt/core",
            "adtcore:objectReference": [
                {"@_adtcore:uri": "/sap/bc/adt/programs/programs/z_report"},
            ],
        }
    }

* a key is an element name, with or without a namespace prefix
* a key starting with ``@_`` is an attribute; ``@_xmlns:p`` declares a prefix
* the key ``#text`` is the text content of the element
* a list value repeats the element, a ``None`` value drops it
"""
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Mapping
from typing import Optional

from lxml import etree
from lxml.etree import _Element

from adtclient.lib import uri as urilib
from adtclient.lib.namespace import nsmap as default_nsmap

ATTRIBUTE_PREFIX = "@_"
TEXT_KEY = "#text"
XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"


def build_xml(
    tree: Mapping[str, Any],
    xml_declaration: bool = True,
    pretty: bool = False,
) -> str:
    """
    Serialize a nested mapping into an XML document.

    Args:
        tree: Mapping with exactly one root element
        xml_declaration: Prepend the ``<?xml ...?>`` declaration
        pretty: Indent the output

    Returns:
        The XML document as a string

    Raises:
        ValueError: If the tree does not have exactly one root element, or
            an element uses a namespace prefix nobody declared
    """
    roots = [(k, v) for k, v in tree.items() if v is not None]
    if len(roots) != 1 or roots[0][0].startswith(ATTRIBUTE_PREFIX):
        raise ValueError("an XML document needs exactly one root element")
    name, value = roots[0]
    if isinstance(value, list):
        raise ValueError("the root element can't be repeated")

    root = _build_element(None, name, value, {})
    return etree.tostring(
        root,
        xml_declaration=xml_declaration,
        encoding="UTF-8",
        pretty_print=pretty,
    ).decode("utf-8")


def _declarations(value: Any) -> Dict[Optional[str], str]:
    """Namespace declarations given as ``@_xmlns`` attributes of one element"""
    ret: Dict[Optional[str], str] = {}
    if not isinstance(value, Mapping):
        return ret
    for key, val in value.items():
        if val is None:
            continue
        if key == ATTRIBUTE_PREFIX + "xmlns":
            ret[None] = str(val)
        elif key.startswith(ATTRIBUTE_PREFIX + "xmlns:"):
            ret[key[len(ATTRIBUTE_PREFIX + "xmlns:") :]] = str(val)
    return ret


def _qualify(
    name: str,
    scope: Dict[Optional[str], str],
    new_decls: Dict[Optional[str], str],
    attribute: bool = False,
) -> str:
    """Resolve ``prefix:local`` to lxml's ``{uri}local`` notation"""
    if ":" not in name:
        if attribute or None not in scope:
            return name
        return "{%s}%s" % (scope[None], name)
    prefix, local = name.split(":", 1)
    if prefix == "xml":
        ## bound by definition, never declared
        return "{%s}%s" % (XML_NAMESPACE, local)
    if prefix in scope:
        return "{%s}%s" % (scope[prefix], local)
    if prefix in default_nsmap:
        ## implicit declaration of a well-known prefix
        scope[prefix] = default_nsmap[prefix]
        new_decls[prefix] = default_nsmap[prefix]
        return "{%s}%s" % (scope[prefix], local)
    raise ValueError("namespace prefix %s is not declared" % prefix)


def _build_element(
    parent: Optional[_Element],
    name: str,
    value: Any,
    inherited: Dict[Optional[str], str],
) -> _Element:
    decls = _declarations(value)
    scope = {**inherited, **decls}
    tag = _qualify(name, scope, decls)

    attributes = []
    children = []
    text = None
    if isinstance(value, Mapping):
        for key, val in value.items():
            if val is None:
                continue
            if key.startswith(ATTRIBUTE_PREFIX):
                attr = key[len(ATTRIBUTE_PREFIX) :]
                if attr == "xmlns" or attr.startswith("xmlns:"):
                    continue
                attributes.append((_qualify(attr, scope, decls, attribute=True), val))
            elif key == TEXT_KEY:
                text = _to_text(val)
            else:
                children.append((key, val))
    else:
        text = _to_text(value)

    ## lxml takes namespace declarations at creation time only
    nsdecl = {k: v for k, v in decls.items() if inherited.get(k) != v}
    if parent is None:
        element = etree.Element(tag, nsmap=nsdecl or None)
    else:
        element = etree.SubElement(parent, tag, nsmap=nsdecl or None)
    for attr, val in attributes:
        element.set(attr, _to_text(val))
    if text is not None:
        element.text = text

    for key, val in children:
        for item in val if isinstance(val, list) else [val]:
            if item is not None:
                _build_element(element, key, item, scope)
    return element


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_object_references_body(
    uris: Iterable[str],
    types: Optional[List[str]] = None,
) -> str:
    """
    Build the ``adtcore:objectReferences`` document the activation
    service expects.  Object URIs go in absolute form, names in upper case.

    Args:
        uris: Object URIs
        types: ADT object types (``PROG/P`` ...) in the same order as
            ``uris``; derived from the URI where missing

    Returns:
        XML document
    """
    types = types or []
    references = []
    for idx, uri in enumerate(uris):
        references.append(
            {
                "@_adtcore:uri": urilib.full_uri(uri),
                "@_adtcore:type": types[idx] if idx < len(types) and types[idx] else urilib.object_type(uri),
                "@_adtcore:name": urilib.object_name(uri).upper(),
            }
        )
    return build_xml(
        {
            "adtcore:objectReferences": {
                "@_xmlns:adtcore": default_nsmap["adtcore"],
                "adtcore:objectReference": references,
            }
        }
    )


def build_deletion_check_body(uri: str) -> str:
    return build_xml(
        {
            "del:checkRequest": {
                "@_xmlns:adtcore": default_nsmap["adtcore"],
                "@_xmlns:del": default_nsmap["del"],
                "del:object": {"@_adtcore:uri": urilib.full_uri(uri)},
            }
        }
    )


def build_deletion_body(uri: str, transport: Optional[str] = None) -> str:
    return build_xml(
        {
            "del:deletionRequest": {
                "@_xmlns:adtcore": default_nsmap["adtcore"],
                "@_xmlns:del": default_nsmap["del"],
                "del:object": {
                    "@_adtcore:uri": urilib.full_uri(uri),
                    ## empty for local ($TMP) objects
                    "del:transportNumber": transport or "",
                },
            }
        }
    )

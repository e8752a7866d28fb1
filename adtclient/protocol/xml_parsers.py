"""
Pure functions for parsing ADT XML responses.

All functions in this module are pure - they take XML bytes in and return
structured data out, with no side effects or I/O.

Lookups match on the *local* part of element and attribute names.  The
backend emits different prefixes for the same logical element depending
on release and service (``adtcore:name``, ``name``, ``asx:LOCK_HANDLE``
...), so the prefix a document happens to use must never matter to a
reader.
"""
import re
from dataclasses import dataclass, field
from typing import Optional, Union

from lxml import etree
from lxml.etree import _Element

from adtclient.lib import error

from .types import ActivationMessage, ActivationResult, ObjectReference, TransportRequest

XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"

MESSAGE_TYPES = {"E": "error", "A": "error", "W": "warning", "S": "success", "I": "info"}
POSITION_RE = re.compile(r"#start=(\d+),(\d+)")


@dataclass
class XmlNode:
    """
    One element of a parsed document.

    Attributes:
        tag: Element name as written in the document (``prefix:local``)
        attributes: Attribute name (``prefix:local``) -> value
        children: Child elements in document order
        text: Text content, whitespace stripped, None if empty
        nsmap: Prefix -> namespace URI in scope for this element
    """

    tag: str
    attributes: dict[str, str] = field(default_factory=dict)
    children: list["XmlNode"] = field(default_factory=list)
    text: str | None = None
    nsmap: dict[str | None, str] = field(default_factory=dict, repr=False)

    @property
    def local_name(self) -> str:
        return local_name(self.tag)

    def find_all(self, name: str) -> list["XmlNode"]:
        return find_elements(self, name)

    def find(self, name: str) -> Optional["XmlNode"]:
        return find_element(self, name)

    def get(self, name: str, default: str | None = None) -> str | None:
        value = get_attribute(self, name)
        return default if value is None else value

    def iter(self):
        yield self
        for child in self.children:
            yield from child.iter()


def local_name(name: str) -> str:
    """The part after the last colon"""
    return name.rsplit(":", 1)[-1]


def parse_xml(text: Union[str, bytes], huge_tree: bool = False) -> XmlNode:
    """
    Parse an XML document into an XmlNode tree.

    Args:
        text: XML document
        huge_tree: Allow parsing very large XML documents

    Returns:
        Root node

    Raises:
        XMLParseError: If the text is empty or not well-formed
    """
    if isinstance(text, str):
        text = text.encode("utf-8")
    if not text or not text.strip():
        raise error.XMLParseError(reason="empty document")
    parser = etree.XMLParser(huge_tree=huge_tree, resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(text, parser)
    except etree.XMLSyntaxError as e:
        raise error.XMLParseError(reason=str(e), body=text) from e
    return _to_node(root)


def _qualified(name: str, element: _Element) -> str:
    """``{uri}local`` -> ``prefix:local`` using the prefixes in scope"""
    if not name.startswith("{"):
        return name
    uri, local = name[1:].split("}", 1)
    if uri == XML_NAMESPACE:
        return "xml:" + local
    for prefix, nsuri in element.nsmap.items():
        if nsuri == uri and prefix is not None:
            return "%s:%s" % (prefix, local)
    ## default namespace, or a namespace without a usable prefix
    return local


def _to_node(element: _Element) -> XmlNode:
    node = XmlNode(
        tag=_qualified(element.tag, element)
        if element.prefix is None
        else "%s:%s" % (element.prefix, etree.QName(element).localname),
        attributes={_qualified(k, element): v for k, v in element.attrib.items()},
        text=element.text.strip() if element.text and element.text.strip() else None,
        nsmap=dict(element.nsmap),
    )
    for child in element:
        ## comments and processing instructions
        if not isinstance(child.tag, str):
            continue
        node.children.append(_to_node(child))
    return node


def find_elements(node: XmlNode, name: str) -> list[XmlNode]:
    """
    Every element below (and including) ``node`` whose local name equals
    the local part of ``name``, in document order.
    """
    wanted = local_name(name)
    return [x for x in node.iter() if x.local_name == wanted]


def find_element(node: XmlNode, name: str) -> XmlNode | None:
    wanted = local_name(name)
    for x in node.iter():
        if x.local_name == wanted:
            return x
    return None


def get_attribute(node: XmlNode, name: str) -> str | None:
    """
    Attribute value by name.  An exact match wins, otherwise the first
    attribute with the same local name, whatever its prefix.
    """
    if name in node.attributes:
        return node.attributes[name]
    wanted = local_name(name)
    for key, value in node.attributes.items():
        if local_name(key) == wanted:
            return value
    return None


def element_text(node: XmlNode, name: str) -> str | None:
    found = find_element(node, name)
    return found.text if found is not None else None


def parse_lock_response(body: Union[str, bytes]) -> dict[str, str | None]:
    """
    Parse the asx document returned by a LOCK call.

    Returns:
        Dict with ``handle`` (None when missing), ``transport``, ``owner``
        and ``is_local``
    """
    tree = parse_xml(body)
    is_local = element_text(tree, "IS_LOCAL")
    return {
        "handle": element_text(tree, "LOCK_HANDLE"),
        "transport": element_text(tree, "CORRNR"),
        "owner": element_text(tree, "CORRUSER"),
        "is_local": is_local,
    }


def parse_error_message(body: Union[str, bytes, None]) -> str | None:
    """
    Extract the human readable message from an ADT exception document
    (``<exc:exception>``) or any other error body.  Returns None when the
    body is not XML or carries no message.
    """
    if not body:
        return None
    try:
        tree = parse_xml(body)
    except error.XMLParseError:
        return None
    for name in ("message", "localizedMessage", "shortText", "error"):
        for node in find_elements(tree, name):
            text = node.text or element_text(node, "txt")
            if text:
                return text
    for node in find_elements(tree, "exception"):
        text = get_attribute(node, "text")
        if text:
            return text
    return None


def parse_exception_type(body: Union[str, bytes, None]) -> str | None:
    """The ``id`` of the ``type`` element of an ADT exception document"""
    if not body:
        return None
    try:
        tree = parse_xml(body)
    except error.XMLParseError:
        return None
    if tree.local_name != "exception":
        return None
    type_node = find_element(tree, "type")
    if type_node is None:
        return None
    return get_attribute(type_node, "id")


def _position(uri: str | None) -> tuple[int | None, int | None]:
    """Line and column of a ``...#start=line,column;end=...`` fragment"""
    match = POSITION_RE.search(uri or "")
    if match is None:
        return None, None
    return int(match.group(1)), int(match.group(2))


def _message_type(value: str | None) -> str:
    return MESSAGE_TYPES.get((value or "I").strip().upper(), "info")


def _check_messages(tree: XmlNode) -> list[ActivationMessage]:
    ## <chkrun:checkMessage chkrun:uri="...#start=8,10" chkrun:type="E" chkrun:shortText="..."/>
    ret = []
    for node in find_elements(tree, "checkMessage"):
        text = get_attribute(node, "shortText")
        if not text:
            continue
        uri = get_attribute(node, "uri")
        line, column = _position(uri)
        ret.append(
            ActivationMessage(
                type=_message_type(get_attribute(node, "type")),
                text=text,
                uri=uri,
                line=line,
                column=column,
            )
        )
    return ret


def _activation_messages(tree: XmlNode) -> list[ActivationMessage]:
    ## <msg type="E" line="295" href="...#start=295,2"><shortText><txt>...</txt></shortText></msg>
    ret = []
    for msg in find_elements(tree, "msg"):
        uri = get_attribute(msg, "href")
        line, column = _position(uri)
        if line is None and (get_attribute(msg, "line") or "").isdigit():
            line = int(get_attribute(msg, "line"))
        text = (
            msg.text
            or element_text(msg, "txt")
            or element_text(msg, "shortText")
            or get_attribute(msg, "shortText")
            or get_attribute(msg, "objDescr")
            or ""
        )
        ret.append(
            ActivationMessage(
                type=_message_type(get_attribute(msg, "type")),
                text=text,
                uri=uri,
                line=line,
                column=column,
            )
        )
    ## some services answer with <message type="E">...</message> instead
    for node in find_elements(tree, "message"):
        severity = get_attribute(node, "type") or get_attribute(node, "severity")
        if severity is None:
            continue
        text = node.text or element_text(node, "text") or ""
        ret.append(ActivationMessage(type=_message_type(severity), text=text))
    return ret


def parse_activation_response(body: Union[str, bytes, None]) -> ActivationResult:
    """
    Parse the messages of an activation or syntax check run.

    Two report formats exist.  The check run service returns
    ``chkrun:checkMessage`` elements with everything in attributes; the
    activation service returns ``msg`` elements (``chkl:msg`` on most
    releases) with a one letter ``type`` and the text below
    ``shortText/txt``.  Check messages win when both are present.
    Positions are taken from the ``#start=line,column`` fragment of the
    message URI.

    Inactive objects reported without any message, but with an error
    link, count as a failed run.
    """
    result = ActivationResult()
    if not body or not body.strip():
        return result
    tree = parse_xml(body)
    result.messages = _check_messages(tree) or _activation_messages(tree)
    if not result.messages and find_element(tree, "inactiveObject") is not None:
        for link in find_elements(tree, "link"):
            rel = get_attribute(link, "rel") or ""
            if "error" in rel or "message" in rel:
                result.messages.append(
                    ActivationMessage(
                        type="error",
                        text="Object has syntax errors and cannot be activated",
                        uri=get_attribute(link, "href"),
                    )
                )
                break
    result.success = not result.errors
    return result


def parse_transport_requests(body: Union[str, bytes, None]) -> list[TransportRequest]:
    """The ``tm:request`` entries of a transport request listing"""
    if not body or not body.strip():
        return []
    tree = parse_xml(body)
    return [
        TransportRequest(
            number=get_attribute(node, "number") or "",
            description=get_attribute(node, "desc") or "",
            owner=get_attribute(node, "owner") or "",
            status=get_attribute(node, "status") or "",
        )
        for node in find_elements(tree, "request")
    ]


def parse_search_results(body: Union[str, bytes, None]) -> list[ObjectReference]:
    if not body or not body.strip():
        return []
    tree = parse_xml(body)
    return [
        ObjectReference(
            uri=get_attribute(node, "uri") or "",
            name=get_attribute(node, "name") or "",
            type=get_attribute(node, "type") or "",
            package=get_attribute(node, "packageName"),
        )
        for node in find_elements(tree, "objectReference")
    ]


def parse_deletion_check_response(body: Union[str, bytes, None]) -> str | None:
    """
    Returns the reason the backend refuses the deletion, or None if the
    object can be deleted.
    """
    if not body or not body.strip():
        return None
    tree = parse_xml(body)
    for node in find_elements(tree, "error"):
        return node.text or get_attribute(node, "message") or "deletion check failed"
    if find_element(tree, "notAllowed") is not None:
        return "object deletion is not allowed"
    return None

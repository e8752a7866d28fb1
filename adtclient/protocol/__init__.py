"""
Protocol layer of the ADT client.

This module provides protocol-level building blocks without any I/O.
It describes requests and parses responses as pure data transformations.

The protocol layer is organized into:
- types: Core data structures (ADTRequest, ADTResponse, LockHandle, ...)
- xml_builders: Pure functions to build XML request bodies
- xml_parsers: Pure functions to parse XML response bodies

Example usage:

    from adtclient.protocol import build_xml, parse_xml, find_elements

    body = build_xml({"adtcore:objectReferences": {...}})
    tree = parse_xml(response.body)
    for msg in find_elements(tree, "msg"):
        print(msg.get("type"), msg.text)
"""

from .types import (
    # Enums
    ADTMethod,
    SessionType,
    TokenState,
    # Request/Response
    ADTRequest,
    ADTResponse,
    # Result types
    ActivationMessage,
    ActivationResult,
    LockHandle,
    ObjectReference,
    TransportRequest,
)
from .xml_builders import (
    build_deletion_body,
    build_deletion_check_body,
    build_object_references_body,
    build_xml,
)
from .xml_parsers import (
    XmlNode,
    element_text,
    find_element,
    find_elements,
    get_attribute,
    parse_activation_response,
    parse_deletion_check_response,
    parse_error_message,
    parse_exception_type,
    parse_lock_response,
    parse_search_results,
    parse_transport_requests,
    parse_xml,
)

__all__ = [
    # Enums
    "ADTMethod",
    "SessionType",
    "TokenState",
    # Request/Response
    "ADTRequest",
    "ADTResponse",
    # Result types
    "ActivationMessage",
    "ActivationResult",
    "LockHandle",
    "ObjectReference",
    "TransportRequest",
    # XML Builders
    "build_deletion_body",
    "build_deletion_check_body",
    "build_object_references_body",
    "build_xml",
    # XML Parsers
    "XmlNode",
    "element_text",
    "find_element",
    "find_elements",
    "get_attribute",
    "parse_activation_response",
    "parse_deletion_check_response",
    "parse_error_message",
    "parse_exception_type",
    "parse_lock_response",
    "parse_search_results",
    "parse_transport_requests",
    "parse_xml",
]

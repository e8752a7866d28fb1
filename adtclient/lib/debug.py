from lxml import etree

MASKED_HEADERS = ("authorization", "x-csrf-token", "cookie", "set-cookie")


def xmlstring(root):
    """Pretty printed XML for debug output; anything else comes back as text"""
    if isinstance(root, bytes):
        root = root.decode("utf-8", errors="replace")
    if isinstance(root, str):
        parser = etree.XMLParser(resolve_entities=False, no_network=True)
        try:
            root = etree.fromstring(root.encode("utf-8"), parser)
        except etree.XMLSyntaxError:
            return root
    try:
        return etree.tostring(root, pretty_print=True).decode("utf-8")
    except TypeError:
        return str(root)


def mask(value: str, keep: int = 8) -> str:
    """Tokens and cookies end up in debug logs, only their start is shown"""
    if not value:
        return value
    if len(value) <= keep:
        return "*" * len(value)
    return value[:keep] + "..."


def masked_headers(headers) -> dict:
    ret = {}
    for key in headers:
        value = headers[key]
        if key.lower() == "authorization":
            value = value.split(" ")[0] + " ****"
        elif key.lower() in MASKED_HEADERS and value.lower() != "fetch":
            value = mask(value)
        ret[key] = value
    return ret

def to_wire(text):
    if text is None:
        return None
    if isinstance(text, str):
        text = bytes(text, "utf-8")
    return text


def to_normal_str(text):
    """
    Make sure we return a normal string, whatever the backend or the
    caller handed us
    """
    if text is None:
        return text
    if not isinstance(text, str):
        text = text.decode("utf-8", errors="replace")
    return text

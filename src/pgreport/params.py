"""Extraction of literal values from serialized test parameters."""

PAIRS = {'"': '"', "'": "'", "{": "}"}


def parse_value_param(text: str) -> list[str]:
    """Return the top-level quoted or braced substrings of `text`.

    Only the outermost level is read: the first valid closer ends a token,
    so inner tuples or nested quotes are not split further. A closer is
    treated as escaped when either of the two characters before it is a
    backslash; longer escape runs are not followed. Tokens are returned in
    the order they close, and an unterminated trailing token is dropped.

    Example:
        >>> parse_value_param("('/models/foo.xml', \\"CPU\\")")
        ['/models/foo.xml', 'CPU']
    """
    results: list[str] = []
    closer: str | None = None
    beginning = 0

    for pos, char in enumerate(text):
        if closer is None:
            closer = PAIRS.get(char)
            beginning = pos + 1
            continue
        if char != closer:
            continue
        if pos < 3 or (text[pos - 1] != "\\" and text[pos - 2] != "\\"):
            if pos > beginning and pos < len(text):
                results.append(text[beginning:pos])
            closer = None

    return results

"""
Input sanitizing helpers.

WHAT: HTML escaping for stored user text and filename normalization for
storage keys and download names.
"""

import re

_HTML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#39;",
}

_PATH_SEPARATORS = re.compile(r"[\\/]+")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]+")
_WHITESPACE = re.compile(r"\s+")
_DISALLOWED_NAME_CHARS = re.compile(r"[^A-Za-z0-9._ -]+")
_REPEATED_DASHES = re.compile(r"-{2,}")


def escape_html(text: str) -> str:
    """
    Escape the five HTML-significant characters.

    Comment bodies are stored escaped and rendered as plain text, so this
    runs exactly once, before storage.

    Example:
        >>> escape_html("<b>\\"hi\\" & 'bye'</b>")
        '&lt;b&gt;&quot;hi&quot; &amp; &#39;bye&#39;&lt;/b&gt;'
    """
    return "".join(_HTML_ESCAPES.get(char, char) for char in text)


def sanitize_filename(filename: str, max_length: int = 120) -> str:
    """
    Produce a filename safe for storage keys and Content-Disposition headers.

    HOW:
    1. Path separators become "-", control characters are dropped
    2. Whitespace is trimmed and collapsed
    3. Characters outside [A-Za-z0-9._ -] in the stem become "-"
    4. The stem is truncated so the result fits max_length; the extension
       is kept and lower-cased

    Args:
        filename: Name supplied by the client
        max_length: Upper bound on the result length

    Returns:
        Sanitized filename ("file" if nothing usable is left)

    Example:
        >>> sanitize_filename("../../etc/My Report?.PDF")
        '..-..-etc-My Report-.pdf'
    """
    cleaned = _CONTROL_CHARS.sub("", _PATH_SEPARATORS.sub("-", filename))
    cleaned = _WHITESPACE.sub(" ", cleaned.strip())

    dot = cleaned.rfind(".")
    if dot > 0:
        stem, ext = cleaned[:dot], cleaned[dot + 1:]
    else:
        stem, ext = cleaned, ""

    stem = _REPEATED_DASHES.sub("-", _DISALLOWED_NAME_CHARS.sub("-", stem))
    ext = _DISALLOWED_NAME_CHARS.sub("", ext).strip()
    budget = max(1, max_length - (len(ext) + 1 if ext else 0))
    stem = stem[:budget] or "file"

    return f"{stem}.{ext.lower()}" if ext else stem

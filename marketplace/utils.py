import html
import re
from typing import Optional
import bleach

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9.-]")


def sanitize_input(value: Optional[str]) -> str:
    """Sanitize a user-supplied string before it is stored.

    - Removes NULL bytes
    - Strips HTML tags using bleach.clean(..., strip=True)
    - Unescapes the entities bleach leaves behind; values go out as JSON, not HTML
    - Trims whitespace
    """
    if value is None:
        return ""
    val = value.replace("\x00", "")
    val = bleach.clean(val, tags=set(), strip=True)
    val = html.unescape(val)
    return val.strip()


def sanitize_filename(filename: str) -> str:
    # anything outside [A-Za-z0-9.-] becomes "_"
    return _UNSAFE_KEY_CHARS.sub("_", filename)

import datetime
import re

# "======\nID#AAABu7X_-hw" banners that some exporters prepend to comment bodies
_BANNER_WITH_TAG_RE = re.compile(r"={3,}\s*ID#[A-Za-z0-9._-]+\s*")
_BANNER_LINE_RE = re.compile(r"^={3,}[ \t]*", re.MULTILINE)
_TAG_ONLY_LINE_RE = re.compile(r"^[ \t]*ID#[A-Za-z0-9._-]+[ \t]*$", re.MULTILINE)
_LEADING_BLANK_LINES_RE = re.compile(r"^\s*\n+")


def clean_comment_body(text: str) -> str:
    """
    Remove author-tag banners and blank lead-in lines from a comment body.

    >>> clean_comment_body("======\\nID#AAABu7X_-hw\\nActual comment text")
    'Actual comment text'

    Applying the function to its own output returns that output unchanged.
    """
    if not text:
        return ""
    # each pass can expose a new leading banner or tag line, so loop to a fixpoint
    previous = None
    cleaned = text
    while cleaned != previous:
        previous = cleaned
        cleaned = _BANNER_WITH_TAG_RE.sub("", cleaned)
        cleaned = _BANNER_LINE_RE.sub("", cleaned)
        cleaned = _TAG_ONLY_LINE_RE.sub("", cleaned)
        cleaned = _LEADING_BLANK_LINES_RE.sub("", cleaned)
        cleaned = cleaned.strip()
    return cleaned


def format_timestamp(value: str) -> str:
    """
    Render an ISO 8601 comment timestamp as ``YYYY-MM-DD HH:MM:SS`` (UTC).

    Unparseable input is returned as-is so no information is lost.
    """
    if not value:
        return ""
    raw = value.strip()
    candidate = raw[:-1] + "+00:00" if raw.endswith(("Z", "z")) else raw
    # Python < 3.11 only accepts 0, 3 or 6 fractional digits
    candidate = re.sub(
        r"\.(\d+)", lambda m: "." + (m.group(1) + "000000")[:6], candidate, count=1
    )
    try:
        parsed = datetime.datetime.fromisoformat(candidate)
    except ValueError:
        return raw
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(datetime.timezone.utc)
    return parsed.strftime("%Y-%m-%d %H:%M:%S")

"""
Markup scrubbing for free text that is later rendered by a browser.

Journal content, chat messages and program descriptions are stored as plain
text. Stripping markup before storage means no reader has to trust the
writer.
"""

import re

from .validation import sanitize_string


_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_STYLE_BLOCK = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]*>")
_EVENT_HANDLER = re.compile(r"\bon\w+\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE)
_JAVASCRIPT_URL = re.compile(r"javascript:", re.IGNORECASE)
_UNSAFE_DATA_URL = re.compile(r"data:(?!image/(?:png|jpeg|gif|webp))", re.IGNORECASE)


def sanitize_text(text: str) -> str:
    """Strip every tag, script block, inline handler and script URL."""
    if not text:
        return ""
    cleaned = _SCRIPT_BLOCK.sub("", text)
    cleaned = _STYLE_BLOCK.sub("", cleaned)
    cleaned = _EVENT_HANDLER.sub("", cleaned)
    cleaned = _TAG.sub("", cleaned)
    cleaned = _JAVASCRIPT_URL.sub("", cleaned)
    cleaned = _UNSAFE_DATA_URL.sub("", cleaned)
    return sanitize_string(cleaned)


"""
1.0 Fingerprint Module
Content fingerprints used to decide whether a page changed between runs.

A fingerprint is the lowercase MD5 hex digest of the page bytes. It is only
ever compared for equality, MD5 is plenty for spotting edits.
"""

import hashlib
import re
from typing import Union

FINGERPRINT_LENGTH = 32

_FINGERPRINT_RE = re.compile(r"^[0-9a-fA-F]{32}$")


def fingerprint(content: Union[bytes, str]) -> str:
    """
    1.1 Compute the fingerprint of raw page content.

    Strings are encoded as UTF-8 first. No normalization happens here, so any
    byte difference gives a different fingerprint.

    Args:
        content: Page body as bytes (or text)

    Returns:
        32-character lowercase hex digest
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.md5(content).hexdigest()


def normalize_content(content: Union[bytes, str]) -> bytes:
    """
    1.2 Normalize page content before fingerprinting.

    Strips surrounding whitespace and converts CRLF line endings to LF, so a
    site served from Windows and from Linux fingerprints the same.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    return content.strip().replace(b"\r\n", b"\n")


def is_fingerprint(value) -> bool:
    """Check that a value looks like a fingerprint (32 hex characters)."""
    return isinstance(value, str) and bool(_FINGERPRINT_RE.match(value))

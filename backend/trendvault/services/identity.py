"""Post identity and content fingerprints used for duplicate detection"""
import hashlib
import re
from typing import Optional, Union
from urllib.parse import urlparse

# Every pattern captures the same slot: the numeric post ID after /status/
POST_ID_PATTERNS = [
    re.compile(r"twitter\.com/\w+/status/(\d+)"),
    re.compile(r"x\.com/\w+/status/(\d+)"),
    re.compile(r"mobile\.twitter\.com/\w+/status/(\d+)"),
    re.compile(r"t\.co/\w+.*status/(\d+)"),
]

POST_URL_PATTERN = re.compile(
    r"^https?://(www\.|mobile\.)?(twitter\.com|x\.com)/\w+/status/\d+",
    re.IGNORECASE
)
SHORT_LINK_HOSTS = {"t.co"}


def extract_external_id(url: Optional[str]) -> Optional[str]:
    """Return the post ID embedded in a post URL, or None"""
    if not url:
        return None
    for pattern in POST_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def is_supported_url(url: Optional[str]) -> bool:
    """Accept post URLs on the canonical/mobile domains and short links"""
    if not url:
        return False
    if POST_URL_PATTERN.match(url):
        return True
    parsed = urlparse(url)
    return (
        parsed.scheme in ("http", "https")
        and (parsed.hostname or "").lower() in SHORT_LINK_HOSTS
        and len(parsed.path.strip("/")) > 0
    )


def content_fingerprint(title: Optional[str], uploader: Optional[str],
                        duration: Optional[Union[str, int]]) -> str:
    """md5 over normalized title, uploader and duration

    Title is lowercased and trimmed; uploader and duration are used as given.
    Not unique: two uploads with the same metadata share a fingerprint.
    """
    content = f"{(title or '').lower().strip()}_{uploader or ''}_{duration or 0}"
    return hashlib.md5(content.encode("utf-8")).hexdigest()


def binary_hash(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def parse_duration_seconds(duration_formatted: Optional[Union[str, int]]) -> int:
    """"10" -> 10, "1:05" -> 65, "1:02:03" -> 3723; anything unparseable -> 0"""
    if duration_formatted is None:
        return 0
    if isinstance(duration_formatted, int):
        return max(duration_formatted, 0)

    parts = str(duration_formatted).strip().split(":")
    if not parts or len(parts) > 3 or not all(p.isdigit() for p in parts):
        return 0
    seconds = 0
    for part in parts:
        seconds = seconds * 60 + int(part)
    return seconds

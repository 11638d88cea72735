"""
Conditional GET helpers.

List endpoints compute a weak ETag from what they are about to return and
answer 304 when the client already holds that version.
"""
import hashlib
from typing import Any, Optional

from fastapi import Request, Response

# Workspace data is per-user: clients may keep it but must revalidate
CACHE_CONTROL = "private, max-age=0, must-revalidate"


def make_signature(*parts: Any) -> str:
    """Weak ETag over the string form of each part"""
    digest = hashlib.sha256()
    for part in parts:
        digest.update(str(part).encode("utf-8"))
        digest.update(b"|")
    return f'W/"{digest.hexdigest()[:32]}"'


def _opaque(tag: str) -> str:
    tag = tag.strip()
    return tag[2:] if tag.startswith("W/") else tag


def etag_matches(if_none_match: Optional[str], etag: str) -> bool:
    """
    Weak comparison of an If-None-Match header against an ETag.

    The header may list several tags separated by commas, or be "*".
    """
    if not if_none_match:
        return False
    if if_none_match.strip() == "*":
        return True
    wanted = _opaque(etag)
    return any(_opaque(tag) == wanted for tag in if_none_match.split(","))


def maybe_304(request: Request, etag: str) -> Optional[Response]:
    """304 Not Modified when the request already holds this version, else None"""
    if etag_matches(request.headers.get("if-none-match"), etag):
        return Response(status_code=304, headers=cache_headers(etag))
    return None


def cache_headers(etag: str) -> dict:
    return {
        "ETag": etag,
        "Cache-Control": CACHE_CONTROL,
    }

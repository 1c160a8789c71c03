"""
Response envelope helpers shared by all endpoints.

Every successful response has the shape::

    {"status": "success", "results": <n>?, "data": {...}?, "message": "..."?}

MongoDB documents contain ``ObjectId`` values which JSON cannot
represent; ``to_public`` converts them (recursively) to strings and
drops fields that must never leave the server.
"""

from typing import Any, Dict, Iterable, Optional

from bson import ObjectId

# Internal fields stripped from every document before serialization.
PRIVATE_FIELDS = frozenset(
    {
        "password",
        "passwordConfirm",
        "emailVerificationToken",
        "emailVerificationExpires",
        "phoneVerificationCode",
        "phoneVerificationExpires",
        "passwordResetToken",
        "passwordResetExpires",
    }
)


def _convert(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: _convert(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_convert(v) for v in value]
    return value


def to_public(document: Optional[Dict[str, Any]], hidden: Iterable[str] = PRIVATE_FIELDS) -> Optional[Dict[str, Any]]:
    """Return a JSON-friendly copy of ``document`` without private fields."""
    if document is None:
        return None
    hidden = set(hidden)
    return {key: _convert(value) for key, value in document.items() if key not in hidden}


def success(
    data: Any = None,
    *,
    message: Optional[str] = None,
    results: Optional[int] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Build a ``{"status": "success", ...}`` envelope."""
    body: Dict[str, Any] = {"status": "success"}
    if results is not None:
        body["results"] = results
    if message is not None:
        body["message"] = message
    body.update(extra)
    if data is not None:
        body["data"] = data
    return body

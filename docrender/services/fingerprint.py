"""
Request fingerprinting.

A fingerprint is the SHA-256 of the canonical JSON serialization of a
(template name, data) pair. Key order never affects the result.
"""

import hashlib
import json
from typing import Any

from docrender.core.errors import InvalidPayload


def canonical_json(template_name: str, data: Any) -> str:
    """
    Serialize a (template name, data) pair deterministically.

    Keys are sorted at every depth and separators are compact, so
    logically identical payloads produce identical strings.

    Raises:
        InvalidPayload: If data contains values JSON cannot represent
    """
    payload = {"templateName": template_name, "data": data}
    try:
        return json.dumps(
            payload,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise InvalidPayload(
            "Request data is not serializable",
            {"reason": str(e)},
        ) from e


def fingerprint(template_name: str, data: Any) -> str:
    """
    Compute the content hash identifying a render request.

    Args:
        template_name: Requested template name
        data: Request data (nested mappings/sequences)

    Returns:
        SHA-256 hex digest (64 characters)

    Raises:
        InvalidPayload: If data is not serializable
    """
    canonical = canonical_json(template_name, data)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

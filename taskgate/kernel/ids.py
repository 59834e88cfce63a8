"""
Identifier helpers shared by the kernel layers.
"""

import uuid
from typing import Any, Optional


def normalize_id(value: Any) -> Optional[str]:
    """Normalize an identifier so UUIDs and their string form compare equal."""
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return str(value)
    text = str(value).strip()
    try:
        return str(uuid.UUID(text))
    except ValueError:
        return text

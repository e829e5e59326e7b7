"""Input checks shared by the portal services."""

from typing import Optional

from exam_api.exceptions import ValidationError


def require_text(value: Optional[str], field_name: str) -> str:
    """Return `value` trimmed, or raise ValidationError when it is empty."""
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field_name} is required.")
    return text

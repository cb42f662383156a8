"""Input coercion shared by the services."""

from typing import Any

from app.exceptions import ErrorCode, ValidationError
from app.models.media import MediaType


def coerce_media_type(media_type: Any) -> MediaType:
    try:
        return MediaType(media_type)
    except ValueError:
        raise ValidationError(
            f"Unsupported media type '{media_type}'",
            field="media_type",
            error_code=ErrorCode.VALIDATION_UNSUPPORTED_KIND,
        ) from None


def is_positive_id(value: Any) -> bool:
    # bool is an int subclass but never a valid id
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def require_positive_id(value: Any, field: str) -> int:
    if not is_positive_id(value):
        raise ValidationError(f"{field} must be a positive integer", field=field)
    return value

"""TrackMate — Common schema helpers."""
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from trackmate.core.exceptions import ValidationError

T = TypeVar("T", bound=BaseModel)


def validate_payload(schema: type[T], data: T | dict[str, Any]) -> T:
    """Coerce a dict into ``schema``; report the first bad field as ValidationError."""
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or schema.__name__
        raise ValidationError(field, first.get("msg", "invalid value")) from exc

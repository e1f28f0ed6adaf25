from enum import Enum
from typing import Any, Optional, Type, TypeVar

from bson import ObjectId as _ObjectId
from typing_extensions import Annotated
from pydantic.functional_validators import AfterValidator

from app.core.errors import ValidationError

E = TypeVar("E", bound=Enum)


def check_object_id(value: str) -> str:
    if not _ObjectId.is_valid(value):
        raise ValueError("Invalid ObjectId")
    return value


ObjectId = Annotated[str, AfterValidator(check_object_id)]


def parse_enum(enum_cls: Type[E], value: Any, field: str) -> E:
    """Coerce ``value`` to ``enum_cls`` or raise a ValidationError naming ``field``."""
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {field} '{value}'. Allowed values: {allowed}",
            {"field": field, "value": value},
        )


def require_fields(**fields: Optional[Any]) -> None:
    missing = [name for name, value in fields.items() if value in (None, "")]
    if missing:
        raise ValidationError(
            f"{', '.join(missing)} {'is' if len(missing) == 1 else 'are'} required",
            {"missing": missing},
        )

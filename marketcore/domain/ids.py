# marketcore/domain/ids.py
"""
Entity ids are 64-bit in the database and unbounded Python ints in memory.
On the wire they always travel as decimal strings so clients limited to
53-bit numbers never round them.
"""
from typing import Annotated, Any

from pydantic import BeforeValidator, PlainSerializer

from marketcore.domain.errors import ValidationError


def parse_id(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Invalid id: {value!r}")

    if isinstance(value, int):
        if value <= 0:
            raise ValidationError(f"Invalid id: {value!r}")
        return value

    if isinstance(value, str) and value.isdigit() and value.isascii():
        parsed = int(value)
        if parsed > 0:
            return parsed

    raise ValidationError(f"Invalid id: {value!r}")


def parse_optional_id(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return parse_id(value)


EntityId = Annotated[int, BeforeValidator(parse_id), PlainSerializer(str, return_type=str)]
OptionalEntityId = Annotated[
    int | None,
    BeforeValidator(parse_optional_id),
    PlainSerializer(lambda v: None if v is None else str(v), return_type=str | None),
]

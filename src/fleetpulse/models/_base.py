"""Base model and coercion helpers for telemetry wire objects.

Every wire model inherits from :class:`FleetBaseModel` which provides:

* ``alias_generator=to_camel`` so camelCase wire keys map
  automatically to snake_case fields.
* ``extra="allow"`` so keys the pipeline does not interpret are
  carried through to the downstream consumer untouched.
* A ``model_validator(mode="before")`` that drops JSON ``null`` values
  so the field default is used, and stashes the decoded mapping in
  ``raw`` for models that set ``_KEEP_RAW``.
"""

from __future__ import annotations

import math
from typing import Annotated, Any, ClassVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


def truncate_int(value: Any) -> Any:
    """Coerce a numeric wire value to ``int`` by truncating toward zero.

    Fractional values (``1500.9``) and numeric strings (``"1500"``) are
    accepted. Anything else is returned unchanged so the field's own
    validation reports the error.
    """
    if value is None or isinstance(value, bool) or isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError("integer field must be finite")
        return math.trunc(value)
    return value


def truncating_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero (``-150 / 100 == -1``)."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


WireInt = Annotated[int, BeforeValidator(truncate_int)]
"""Annotated ``int`` that accepts floats and numeric strings, truncating."""


def lenient_float(value: Any) -> float | None:
    """Best-effort float for pass-through readings; ``None`` when unusable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


Reading = Annotated[float | None, BeforeValidator(lenient_float)]
"""Optional sensor value. Unparseable input becomes ``None`` instead of failing."""


class FleetBaseModel(BaseModel):
    """Base for telemetry wire models."""

    _KEEP_RAW: ClassVar[bool] = False

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        cleaned = {key: value for key, value in values.items() if value is not None}
        if cls._KEEP_RAW:
            cleaned["raw"] = dict(values)
        return cleaned

    def to_wire(self) -> dict[str, Any]:
        """Dump using wire (camelCase) keys, omitting absent fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

"""
Base Models and Common Types

Foundation classes for all consent models. Wire payloads use camelCase keys;
Python code uses snake_case attributes and populates either.
"""

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel


def coerce_datetime(value: Any) -> Any:
    """
    Normalize server timestamps before validation.

    The consent service emits ISO8601 strings with a trailing 'Z' and
    occasionally an empty string for "never".
    """
    if value == "":
        return None
    if isinstance(value, str):
        return value.replace("Z", "+00:00")
    return value


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive timestamps as UTC so they compare with aware ones."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


UTCDateTime = Annotated[datetime, BeforeValidator(coerce_datetime), AfterValidator(ensure_utc)]


class ConsentModel(BaseModel):
    """Base model for all consent entities with common configuration."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape the consent service expects."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

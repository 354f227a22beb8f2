from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from slack_profile.errors import ValidationError

LOGGER = logging.getLogger(__name__)

STANDARD_FIELDS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "display_name",
    "title",
    "email",
    "phone",
    "pronouns",
    "real_name",
    "start_date",
)
CUSTOM_FIELD_PREFIX = "X"


@dataclass(frozen=True)
class StandardField:
    field_id: str
    kind: Literal["standard"] = "standard"


@dataclass(frozen=True)
class CustomField:
    field_id: str
    kind: Literal["custom"] = "custom"


ProfileField = StandardField | CustomField


def classify_field(field_id: str) -> ProfileField:
    # Routing depends only on the id; the team catalog is never consulted.
    if not field_id or not field_id.strip():
        raise ValidationError("Field name or ID is required")
    if field_id.startswith(CUSTOM_FIELD_PREFIX):
        return CustomField(field_id)
    return StandardField(field_id)


def is_known_standard_field(field_id: str) -> bool:
    return field_id in STANDARD_FIELDS


def build_field_payload(field_id: str, value: str) -> dict[str, Any]:
    field = classify_field(field_id)
    if isinstance(field, CustomField):
        return {"fields": {field.field_id: {"value": value, "alt": ""}}}
    if not is_known_standard_field(field.field_id):
        LOGGER.warning("%s is not a known standard field; sending it as a top-level profile key", field.field_id)
    return {field.field_id: value}

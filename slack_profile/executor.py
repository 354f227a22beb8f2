from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from typing import Any, Protocol

from slack_profile.errors import ProfileApiError, ValidationError
from slack_profile.fields import build_field_payload
from slack_profile.models import BatchResult, UpdateOutcome

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[UpdateOutcome], None]


class ProfileWriter(Protocol):
    def set_profile(self, user_id: str, profile: dict[str, Any]) -> dict[str, Any]: ...


class UpdateExecutor:
    def __init__(self, service: ProfileWriter) -> None:
        self.service = service

    def apply_to_one(self, user_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        if not user_id or not user_id.strip():
            raise ValidationError("User ID is required")
        return self.service.set_profile(user_id, payload)

    def apply_to_many(
        self,
        user_ids: list[str],
        payload: dict[str, Any],
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        if not user_ids:
            raise ValidationError("No valid user IDs provided")
        if any(not user_id or not user_id.strip() for user_id in user_ids):
            raise ValidationError("User IDs must not be blank")

        LOGGER.info("Applying profile update to %d users", len(user_ids))
        result = BatchResult()
        for user_id in user_ids:
            outcome = self._apply_isolated(user_id, payload)
            result.outcomes.append(outcome)
            if on_progress is not None:
                on_progress(outcome)

        LOGGER.info("Batch finished: %d/%d succeeded", result.success_count, result.total_count)
        return result

    def apply_field_to_many(
        self,
        user_ids: list[str],
        field_id: str,
        value: str,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        payload = build_field_payload(field_id, value)
        return self.apply_to_many(user_ids, payload, on_progress=on_progress)

    def _apply_isolated(self, user_id: str, payload: dict[str, Any]) -> UpdateOutcome:
        try:
            self.service.set_profile(user_id, payload)
        except ProfileApiError as exc:
            LOGGER.warning("Update failed for user %s (%s): %s", user_id, exc.kind, exc.message)
            return UpdateOutcome(user_id=user_id, success=False, error_message=exc.message, error_kind=exc.kind)
        return UpdateOutcome(user_id=user_id, success=True)


def parse_user_ids(raw: str | Iterable[str]) -> list[str]:
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    return [part.strip() for part in parts if part and part.strip()]


def parse_profile_payload(raw_json: str) -> dict[str, Any]:
    if not raw_json or not raw_json.strip():
        raise ValidationError("Profile data is required")
    try:
        payload = json.loads(raw_json)
    except ValueError as exc:
        raise ValidationError("Invalid JSON in profile data") from exc
    if not isinstance(payload, dict):
        raise ValidationError("Profile data must be a JSON object")
    return payload

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError as ModelValidationError

from slack_profile.errors import RemoteDomainError, TransportError
from slack_profile.models import TeamField

LOGGER = logging.getLogger(__name__)

SLACK_API_BASE_URL = "https://slack.com/api"


@dataclass
class SlackProfileClient:
    token: str
    base_url: str = SLACK_API_BASE_URL
    timeout_seconds: float | None = None
    transport: httpx.BaseTransport | None = None

    def get_profile(self, user_id: str) -> dict[str, Any]:
        data = self._call("GET", "users.profile.get", params={"user": user_id, "include_labels": "true"})
        profile = data.get("profile")
        return profile if isinstance(profile, dict) else {}

    def get_team_fields(self) -> dict[str, TeamField]:
        data = self._call("GET", "team.profile.get")
        profile = data.get("profile")
        if not isinstance(profile, dict):
            return {}
        return parse_team_fields(profile.get("fields"))

    def set_profile(self, user_id: str, profile: dict[str, Any]) -> dict[str, Any]:
        # users.profile.set expects the profile as a JSON-encoded string.
        body = {"user": user_id, "profile": json.dumps(profile)}
        return self._call("POST", "users.profile.set", json=body)

    def _call(self, method: str, api_method: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self.base_url.rstrip('/')}/{api_method}"
        headers = {"Authorization": f"Bearer {self.token}"}
        LOGGER.debug("Calling %s %s", method, api_method)

        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = client.request(method, url, headers=headers, **kwargs)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            detail = _error_detail(exc.response)
            raise TransportError(f"API request failed: {status} - {detail}", status_code=status) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"API request failed: {exc}") from exc
        except ValueError as exc:
            raise TransportError("Invalid response from Slack API") from exc

        if not isinstance(data, dict):
            raise TransportError("Invalid response from Slack API")
        if not data.get("ok"):
            raise RemoteDomainError(str(data.get("error") or "unknown_error"), api_method=api_method)
        return data


def parse_team_fields(raw: Any) -> dict[str, TeamField]:
    catalog: dict[str, TeamField] = {}

    # team.profile.get returns a list of field objects: [{"id": "Xf01", "label": ...}]
    if isinstance(raw, list):
        for item in raw:
            if not isinstance(item, dict) or not isinstance(item.get("id"), str):
                continue
            field = _to_team_field(item)
            if field is not None:
                catalog[field.id] = field

    # Mapping shape keyed by id: {"Xf01": {"label": ..., "type": ...}}
    elif isinstance(raw, dict):
        for field_id, meta in raw.items():
            if not isinstance(field_id, str) or not isinstance(meta, dict):
                continue
            field = _to_team_field({**meta, "id": field_id})
            if field is not None:
                catalog[field.id] = field

    return catalog


def _to_team_field(item: dict[str, Any]) -> TeamField | None:
    try:
        return TeamField.model_validate(item)
    except ModelValidationError as exc:
        LOGGER.debug("Skipping malformed team field %r: %s", item.get("id"), exc)
        return None


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return response.reason_phrase or "unknown error"

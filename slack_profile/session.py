from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from slack_profile.errors import ProfileApiError, ValidationError
from slack_profile.executor import UpdateExecutor, parse_profile_payload, parse_user_ids
from slack_profile.fields import STANDARD_FIELDS, build_field_payload
from slack_profile.models import BatchResult, TeamField, UpdateOutcome
from slack_profile.prompts import Choice, OutputFunc, PromptCancelled, Prompter
from slack_profile.rendering import (
    CATALOG_UNAVAILABLE,
    GOODBYE,
    JSON_HINT,
    format_batch_start,
    format_field_choice_label,
    format_field_listing,
    format_outcome,
    format_profile,
    format_single_result,
    format_summary,
)

LOGGER = logging.getLogger(__name__)

USER_ID_PREFIX = "U"


class ProfileService(Protocol):
    def get_profile(self, user_id: str) -> dict[str, Any]: ...

    def get_team_fields(self) -> dict[str, TeamField]: ...

    def set_profile(self, user_id: str, profile: dict[str, Any]) -> dict[str, Any]: ...


class SessionState(str, Enum):
    MAIN_MENU = "main_menu"
    COLLECTING_USER_IDS = "collecting_user_ids"
    COLLECTING_FIELD_SELECTION = "collecting_field_selection"
    COLLECTING_FIELD_VALUE = "collecting_field_value"
    COLLECTING_JSON_PAYLOAD = "collecting_json_payload"
    EXECUTING = "executing"
    SHOWING_RESULT = "showing_result"
    TERMINATED = "terminated"


class SessionAction(str, Enum):
    GET = "get"
    SINGLE = "single"
    BATCH_SINGLE = "batch_single"
    MULTIPLE = "multiple"
    BATCH_MULTIPLE = "batch_multiple"
    LIST = "list"
    EXIT = "exit"


BATCH_ACTIONS = {SessionAction.BATCH_SINGLE, SessionAction.BATCH_MULTIPLE}
FIELD_ACTIONS = {SessionAction.SINGLE, SessionAction.BATCH_SINGLE}
JSON_ACTIONS = {SessionAction.MULTIPLE, SessionAction.BATCH_MULTIPLE}

MENU_CHOICES = [
    Choice("Get user profile", SessionAction.GET),
    Choice("Set a single field for one user", SessionAction.SINGLE),
    Choice("Set a single field for multiple users", SessionAction.BATCH_SINGLE),
    Choice("Set multiple fields for one user", SessionAction.MULTIPLE),
    Choice("Set multiple fields for multiple users", SessionAction.BATCH_MULTIPLE),
    Choice("List available fields", SessionAction.LIST),
    Choice("Exit", SessionAction.EXIT),
]

_S = SessionState
TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    _S.MAIN_MENU: frozenset({_S.MAIN_MENU, _S.COLLECTING_USER_IDS, _S.TERMINATED}),
    _S.COLLECTING_USER_IDS: frozenset(
        {_S.COLLECTING_FIELD_SELECTION, _S.COLLECTING_JSON_PAYLOAD, _S.EXECUTING, _S.TERMINATED}
    ),
    _S.COLLECTING_FIELD_SELECTION: frozenset({_S.COLLECTING_FIELD_VALUE, _S.TERMINATED}),
    _S.COLLECTING_FIELD_VALUE: frozenset({_S.EXECUTING, _S.TERMINATED}),
    _S.COLLECTING_JSON_PAYLOAD: frozenset({_S.COLLECTING_JSON_PAYLOAD, _S.EXECUTING, _S.TERMINATED}),
    _S.EXECUTING: frozenset({_S.SHOWING_RESULT, _S.TERMINATED}),
    _S.SHOWING_RESULT: frozenset({_S.MAIN_MENU, _S.TERMINATED}),
    _S.TERMINATED: frozenset(),
}

_MANUAL_FIELD = object()


@dataclass
class SessionContext:
    action: SessionAction | None = None
    user_ids: list[str] = field(default_factory=list)
    field_id: str | None = None
    payload: dict[str, Any] | None = None
    json_hint_shown: bool = False
    profile: dict[str, Any] | None = None
    result: BatchResult | None = None
    error: str | None = None

    @property
    def subject(self) -> str:
        return self.field_id or "profile"


class InteractiveSession:
    def __init__(
        self,
        service: ProfileService,
        prompter: Prompter | None = None,
        output: OutputFunc = print,
        catalog: Mapping[str, TeamField] | None = None,
    ) -> None:
        self.service = service
        self.output = output
        self.prompter = prompter or Prompter(output=output)
        self.executor = UpdateExecutor(service)
        self.catalog: dict[str, TeamField] = dict(catalog) if catalog is not None else {}
        self._catalog_loaded = catalog is not None
        self.state = SessionState.MAIN_MENU
        self.context = SessionContext()
        self.history: list[SessionState] = [SessionState.MAIN_MENU]
        self.results: list[BatchResult] = []
        self._handlers: dict[SessionState, Callable[[], SessionState]] = {
            _S.MAIN_MENU: self._main_menu,
            _S.COLLECTING_USER_IDS: self._collect_user_ids,
            _S.COLLECTING_FIELD_SELECTION: self._collect_field_selection,
            _S.COLLECTING_FIELD_VALUE: self._collect_field_value,
            _S.COLLECTING_JSON_PAYLOAD: self._collect_json_payload,
            _S.EXECUTING: self._execute,
            _S.SHOWING_RESULT: self._show_result,
        }

    def run(self) -> None:
        try:
            self.load_catalog()
        except (KeyboardInterrupt, PromptCancelled):
            self._interrupt()
            return
        while self.state is not SessionState.TERMINATED:
            self.step()

    def load_catalog(self) -> None:
        if self._catalog_loaded:
            return
        self.output("🔄 Fetching available fields...\n")
        try:
            self.catalog = self.service.get_team_fields()
        except ProfileApiError as exc:
            LOGGER.warning("Could not fetch custom fields (%s): %s", exc.kind, exc)
            self.output(CATALOG_UNAVAILABLE)
            self.catalog = {}
        self._catalog_loaded = True

    def step(self) -> SessionState:
        if self.state is SessionState.TERMINATED:
            return self.state
        handler = self._handlers[self.state]
        try:
            next_state = handler()
        except (KeyboardInterrupt, PromptCancelled):
            self._interrupt()
            return self.state
        self._transition(next_state)
        return self.state

    def _transition(self, next_state: SessionState) -> None:
        if next_state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal session transition {self.state.value} -> {next_state.value}")
        LOGGER.debug("Session %s -> %s", self.state.value, next_state.value)
        self.state = next_state
        self.history.append(next_state)

    def _interrupt(self) -> None:
        LOGGER.info("Session interrupted in state %s", self.state.value)
        self.output(f"\n\n{GOODBYE}")
        if self.state is not SessionState.TERMINATED:
            self._transition(SessionState.TERMINATED)

    def _main_menu(self) -> SessionState:
        self.context = SessionContext()
        self.output("🚀 Slack Profile CLI - Interactive Mode\n")
        action = self.prompter.select("What would you like to do?", MENU_CHOICES)
        self.context.action = action

        if action is SessionAction.EXIT:
            self.output(GOODBYE)
            return SessionState.TERMINATED
        if action is SessionAction.LIST:
            for line in format_field_listing(self.catalog, bullet="•"):
                self.output(line)
            self.output("")
            return SessionState.MAIN_MENU
        return SessionState.COLLECTING_USER_IDS

    def _collect_user_ids(self) -> SessionState:
        action = self.context.action
        if action in BATCH_ACTIONS:
            raw = self.prompter.ask(
                "Enter Slack user IDs (comma-separated, e.g., U1234567890,U0987654321):",
                validate=validate_user_id_list,
            )
            self.context.user_ids = parse_user_ids(raw)
        else:
            user_id = self.prompter.ask("Enter the Slack user ID (e.g., U1234567890):", validate=validate_user_id)
            self.context.user_ids = [user_id.strip()]

        if action in FIELD_ACTIONS:
            return SessionState.COLLECTING_FIELD_SELECTION
        if action in JSON_ACTIONS:
            return SessionState.COLLECTING_JSON_PAYLOAD
        return SessionState.EXECUTING

    def _collect_field_selection(self) -> SessionState:
        choices = [Choice(field_id, field_id) for field_id in STANDARD_FIELDS]
        choices.extend(Choice(format_field_choice_label(meta), field_id) for field_id, meta in self.catalog.items())
        choices.append(Choice("Enter field ID manually", _MANUAL_FIELD))

        selected = self.prompter.select("Which field would you like to update?", choices)
        if selected is _MANUAL_FIELD:
            selected = self.prompter.ask(
                "Enter the field name or ID (e.g., title or Xf07986PJV2R):",
                validate=lambda text: None if text.strip() else "Field name or ID is required",
            ).strip()

        self.context.field_id = selected
        return SessionState.COLLECTING_FIELD_VALUE

    def _collect_field_value(self) -> SessionState:
        field_id = self.context.subject
        value = self.prompter.ask(f"Enter the value for {field_id} (leave empty to clear):", default="")
        self.context.payload = build_field_payload(field_id, value)
        return SessionState.EXECUTING

    def _collect_json_payload(self) -> SessionState:
        if not self.context.json_hint_shown:
            self.output(JSON_HINT)
            self.context.json_hint_shown = True

        raw = self.prompter.ask("Enter profile data as JSON:")
        try:
            self.context.payload = parse_profile_payload(raw)
        except ValidationError as exc:
            self.output(f"❌ {exc}")
            return SessionState.COLLECTING_JSON_PAYLOAD
        return SessionState.EXECUTING

    def _execute(self) -> SessionState:
        context = self.context
        if context.action is SessionAction.GET:
            try:
                context.profile = self.service.get_profile(context.user_ids[0])
            except ProfileApiError as exc:
                LOGGER.warning("Profile fetch failed for %s (%s): %s", context.user_ids[0], exc.kind, exc)
                context.error = str(exc)
            return SessionState.SHOWING_RESULT

        subject = context.subject

        def report(outcome: UpdateOutcome) -> None:
            self.output(format_outcome(outcome, subject))

        on_progress = None
        if context.action in BATCH_ACTIONS:
            self.output(format_batch_start(subject, len(context.user_ids)))
            on_progress = report

        context.result = self.executor.apply_to_many(context.user_ids, context.payload or {}, on_progress=on_progress)
        self.results.append(context.result)
        return SessionState.SHOWING_RESULT

    def _show_result(self) -> SessionState:
        context = self.context
        if context.action is SessionAction.GET:
            if context.error is not None:
                self.output(f"❌ Error: {context.error}\n")
            else:
                self.output(format_profile(context.user_ids[0], context.profile or {}))
        elif context.result is not None:
            if context.action in BATCH_ACTIONS:
                self.output(format_summary(context.result) + "\n")
            else:
                self.output(format_single_result(context.result.outcomes[0], context.subject) + "\n")
        return SessionState.MAIN_MENU


def validate_user_id(text: str) -> str | None:
    value = text.strip()
    if not value:
        return "User ID is required"
    if not value.startswith(USER_ID_PREFIX):
        return f'User ID should start with "{USER_ID_PREFIX}"'
    return None


def validate_user_id_list(text: str) -> str | None:
    user_ids = parse_user_ids(text)
    if not user_ids:
        return "At least one user ID is required"
    invalid = [user_id for user_id in user_ids if not user_id.startswith(USER_ID_PREFIX)]
    if invalid:
        return f'Invalid user IDs: {", ".join(invalid)} (should start with "{USER_ID_PREFIX}")'
    return None

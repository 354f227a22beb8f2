from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from slack_profile.errors import RemoteDomainError, TransportError
from slack_profile.models import TeamField
from slack_profile.prompts import Prompter
from slack_profile.session import TRANSITIONS, InteractiveSession, SessionState, validate_user_id_list

S = SessionState


class FakeProfileService:
    def __init__(
        self,
        catalog: dict[str, TeamField] | None = None,
        failures: dict[str, Exception] | None = None,
        catalog_error: Exception | None = None,
    ) -> None:
        self.catalog = catalog or {}
        self.failures = failures or {}
        self.catalog_error = catalog_error
        self.calls: list[tuple[str, Any]] = []

    def get_team_fields(self) -> dict[str, TeamField]:
        self.calls.append(("get_team_fields", None))
        if self.catalog_error is not None:
            raise self.catalog_error
        return dict(self.catalog)

    def get_profile(self, user_id: str) -> dict[str, Any]:
        self.calls.append(("get_profile", user_id))
        if user_id in self.failures:
            raise self.failures[user_id]
        return {"real_name": "Ada Lovelace", "title": "Analyst"}

    def set_profile(self, user_id: str, profile: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("set_profile", (user_id, profile)))
        if user_id in self.failures:
            raise self.failures[user_id]
        return {"ok": True}

    @property
    def writes(self) -> list[tuple[str, dict[str, Any]]]:
        return [call[1] for call in self.calls if call[0] == "set_profile"]


def scripted(answers: Iterable[Any]):
    pending = list(answers)

    def read(_prompt: str) -> str:
        if not pending:
            raise EOFError
        answer = pending.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return answer

    return read


def build_session(service: FakeProfileService, answers: Iterable[Any]) -> tuple[InteractiveSession, list[str]]:
    lines: list[str] = []
    prompter = Prompter(input_func=scripted(answers), output=lines.append)
    session = InteractiveSession(service, prompter=prompter, output=lines.append)
    return session, lines


CATALOG = {"Xf0111111": TeamField(id="Xf0111111", label="Favorite drink", type="text")}


def test_exit_terminates_without_remote_writes() -> None:
    service = FakeProfileService()
    session, lines = build_session(service, ["Exit"])

    session.run()

    assert session.state is S.TERMINATED
    assert session.history == [S.MAIN_MENU, S.TERMINATED]
    assert service.writes == []
    assert "👋 Goodbye!" in lines


def test_single_field_flow_for_one_user() -> None:
    service = FakeProfileService(catalog=CATALOG)
    session, lines = build_session(service, ["2", "U1", "title", "Engineer", "Exit"])

    session.run()

    assert service.writes == [("U1", {"title": "Engineer"})]
    assert session.history == [
        S.MAIN_MENU,
        S.COLLECTING_USER_IDS,
        S.COLLECTING_FIELD_SELECTION,
        S.COLLECTING_FIELD_VALUE,
        S.EXECUTING,
        S.SHOWING_RESULT,
        S.MAIN_MENU,
        S.TERMINATED,
    ]
    assert "✅ Successfully updated title for user U1\n" in lines


def test_batch_single_uses_catalog_custom_field() -> None:
    service = FakeProfileService(catalog=CATALOG, failures={"U2": RemoteDomainError("user_not_found")})
    session, lines = build_session(service, ["3", "U1, U2,U3", "Favorite drink", "Barista", "Exit"])

    session.run()

    payload = {"fields": {"Xf0111111": {"value": "Barista", "alt": ""}}}
    assert service.writes == [("U1", payload), ("U2", payload), ("U3", payload)]
    result = session.results[0]
    assert result.success_count == 2
    assert result.total_count == 3
    assert "❌ Failed to update Xf0111111 for user U2: user_not_found" in lines
    assert "\n📊 Summary: 2/3 users updated successfully\n" in lines


def test_manual_field_entry_and_empty_value_clears() -> None:
    service = FakeProfileService()
    session, _lines = build_session(
        service, ["Set a single field for one user", "U1", "manually", "Xf0999", "", "Exit"]
    )

    session.run()

    assert service.writes == [("U1", {"fields": {"Xf0999": {"value": "", "alt": ""}}})]


def test_single_user_id_must_use_prefix() -> None:
    service = FakeProfileService()
    session, lines = build_session(service, ["2", "W123", "U123", "title", "Eng", "Exit"])

    session.run()

    assert service.writes == [("U123", {"title": "Eng"})]
    assert '  User ID should start with "U"' in lines


def test_malformed_json_reprompts_without_remote_call() -> None:
    service = FakeProfileService()
    session, lines = build_session(service, ["4", "U1", "{not json"])

    session.step()  # menu
    session.step()  # user id
    state = session.step()  # malformed JSON

    assert state is S.COLLECTING_JSON_PAYLOAD
    assert session.history[-2:] == [S.COLLECTING_JSON_PAYLOAD, S.COLLECTING_JSON_PAYLOAD]
    assert service.writes == []
    assert "❌ Invalid JSON in profile data" in lines


def test_json_flow_passes_payload_through_verbatim() -> None:
    service = FakeProfileService()
    raw = '{"title":"CTO","fields":{"Xf01":{"value":"Hi","alt":""}}}'
    session, _lines = build_session(service, ["5", "U1,U2", "[1]", raw, "Exit"])

    session.run()

    expected = {"title": "CTO", "fields": {"Xf01": {"value": "Hi", "alt": ""}}}
    assert service.writes == [("U1", expected), ("U2", expected)]
    assert session.history.count(S.COLLECTING_JSON_PAYLOAD) == 2


def test_interrupt_while_collecting_user_ids() -> None:
    service = FakeProfileService()
    session, lines = build_session(service, ["3", KeyboardInterrupt()])

    session.run()

    assert session.state is S.TERMINATED
    assert session.history[-2:] == [S.COLLECTING_USER_IDS, S.TERMINATED]
    assert session.results == []
    assert service.writes == []
    assert "\n\n👋 Goodbye!" in lines


def test_end_of_input_terminates_from_any_prompt() -> None:
    service = FakeProfileService()
    session, _lines = build_session(service, ["2", "U1", "title"])

    session.run()

    assert session.history[-2:] == [S.COLLECTING_FIELD_VALUE, S.TERMINATED]
    assert service.writes == []


def test_interrupt_mid_batch_keeps_dispatched_calls() -> None:
    service = FakeProfileService(failures={"U2": KeyboardInterrupt()})  # type: ignore[dict-item]
    session, _lines = build_session(service, ["3", "U1,U2,U3", "title", "Eng"])

    session.run()

    assert session.state is S.TERMINATED
    assert [user_id for user_id, _payload in service.writes] == ["U1", "U2"]


def test_get_profile_renders_json_and_errors() -> None:
    service = FakeProfileService(failures={"U404": RemoteDomainError("user_not_found")})
    session, lines = build_session(service, ["1", "U1", "1", "U404", "Exit"])

    session.run()

    rendered = "\n".join(lines)
    assert "📋 Profile for user U1:" in rendered
    assert '"real_name": "Ada Lovelace"' in rendered
    assert "❌ Error: Slack API error: user_not_found\n" in lines
    assert service.writes == []


def test_list_renders_catalog_and_returns_to_menu() -> None:
    service = FakeProfileService(catalog=CATALOG)
    session, lines = build_session(service, ["List", "Exit"])

    session.run()

    assert session.history == [S.MAIN_MENU, S.MAIN_MENU, S.TERMINATED]
    assert "  • Xf0111111 - Favorite drink (text)" in lines
    assert "  • start_date" in lines
    assert service.writes == []


def test_catalog_fetch_failure_is_not_fatal() -> None:
    service = FakeProfileService(catalog_error=TransportError("API request failed: timeout"))
    session, lines = build_session(service, ["List", "Exit"])

    session.run()

    assert session.catalog == {}
    assert session.state is S.TERMINATED
    assert any("Could not fetch custom fields" in line for line in lines)
    assert "No custom fields configured." in lines


def test_catalog_fetched_once_per_session() -> None:
    service = FakeProfileService(catalog=CATALOG)
    session, _lines = build_session(service, ["List", "List", "Exit"])

    session.run()

    assert [call[0] for call in service.calls].count("get_team_fields") == 1


def test_injected_catalog_skips_fetch() -> None:
    service = FakeProfileService()
    lines: list[str] = []
    prompter = Prompter(input_func=scripted(["Exit"]), output=lines.append)
    session = InteractiveSession(service, prompter=prompter, output=lines.append, catalog=CATALOG)

    session.run()

    assert service.calls == []
    assert session.catalog == CATALOG


def test_transition_table_only_reaches_terminated_from_every_state() -> None:
    for state, targets in TRANSITIONS.items():
        if state is S.TERMINATED:
            assert targets == frozenset()
        else:
            assert S.TERMINATED in targets


def test_validate_user_id_list() -> None:
    assert validate_user_id_list("U1, U2") is None
    assert validate_user_id_list(" , ") == "At least one user ID is required"
    assert validate_user_id_list("U1,W2") == 'Invalid user IDs: W2 (should start with "U")'

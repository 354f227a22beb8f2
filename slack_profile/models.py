from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class TeamField(BaseModel):
    id: str
    label: str = ""
    type: str = "text"
    hint: str = ""
    ordering: int = 0
    possible_values: list[str] | None = None
    is_hidden: bool = False


class UpdateOutcome(BaseModel):
    user_id: str
    success: bool
    error_message: str | None = None
    error_kind: Literal["remote", "transport", "api"] | None = None


class BatchResult(BaseModel):
    outcomes: list[UpdateOutcome] = Field(default_factory=list)

    @property
    def total_count(self) -> int:
        return len(self.outcomes)

    @property
    def success_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failure_count(self) -> int:
        return self.total_count - self.success_count

    @property
    def failures(self) -> list[UpdateOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

InputFunc = Callable[[str], str]
OutputFunc = Callable[[str], None]
Validator = Callable[[str], str | None]


class PromptCancelled(Exception):
    pass


@dataclass(frozen=True)
class Choice:
    label: str
    value: Any


class Prompter:
    def __init__(
        self,
        input_func: InputFunc | None = None,
        output: OutputFunc | None = None,
        page_size: int = 15,
    ) -> None:
        self._input = input_func or input
        self._output = output or print
        self.page_size = page_size

    def ask(self, message: str, default: str | None = None, validate: Validator | None = None) -> str:
        while True:
            answer = self._read(f"{message} ")
            if answer == "" and default is not None:
                answer = default
            if validate is not None:
                error = validate(answer)
                if error:
                    self._output(f"  {error}")
                    continue
            return answer

    def select(self, message: str, choices: Sequence[Choice]) -> Any:
        """Numbered menu; free text narrows the list, a single match is picked."""
        if not choices:
            raise ValueError("select() needs at least one choice")

        term = ""
        while True:
            visible = filter_choices(choices, term)
            header = f"{message} (type to filter)" if not term else f"{message} [filter: {term}]"
            self._output(header)
            for index, choice in enumerate(visible[: self.page_size], start=1):
                self._output(f"  {index}) {choice.label}")
            if len(visible) > self.page_size:
                self._output(f"  ... {len(visible) - self.page_size} more, type to narrow")

            answer = self._read("> ").strip()
            if not answer:
                term = ""
                continue
            if answer.isdigit():
                position = int(answer)
                if 1 <= position <= min(len(visible), self.page_size):
                    return visible[position - 1].value
                self._output(f"  Pick a number between 1 and {min(len(visible), self.page_size)}")
                continue

            exact = [choice for choice in choices if choice.label.lower() == answer.lower()]
            if len(exact) == 1:
                return exact[0].value

            matches = filter_choices(choices, answer)
            if len(matches) == 1:
                return matches[0].value
            if not matches:
                self._output(f"  No options match '{answer}'")
                continue
            term = answer

    def _read(self, prompt: str) -> str:
        try:
            return self._input(prompt)
        except EOFError as exc:
            raise PromptCancelled("input closed") from exc


def filter_choices(choices: Sequence[Choice], term: str) -> list[Choice]:
    needle = term.strip().lower()
    if not needle:
        return list(choices)
    return [choice for choice in choices if needle in choice.label.lower()]

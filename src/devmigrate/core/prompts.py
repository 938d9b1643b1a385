"""Operator decisions for the restore executor.

The restore executor never reads the terminal directly. It asks a
:class:`DecisionProvider`, which is a rich prompt on a real run and a
:class:`ScriptedDecisions` instance in tests.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from rich.console import Console
from rich.prompt import Confirm, IntPrompt


class DecisionProvider(Protocol):
    """Answers the questions asked during a restore."""

    def confirm(self, question: str, default: bool = False) -> bool:
        """Answer a yes/no question."""

    def choose(self, title: str, options: Sequence[Tuple[int, str]]) -> int:
        """Pick one of the numbered options."""


class ConsoleDecisions:
    """Ask the operator on the terminal."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    def confirm(self, question: str, default: bool = False) -> bool:
        return Confirm.ask(question, default=default, console=self.console)

    def choose(self, title: str, options: Sequence[Tuple[int, str]]) -> int:
        self.console.print(f"[bold]{title}")
        for number, label in sorted(options, key=lambda o: (o[0] == 0, o[0])):
            self.console.print(f"{number}. {label}")
        low = min(number for number, _ in options)
        high = max(number for number, _ in options)
        return IntPrompt.ask(f"Enter your choice ({low}-{high})", console=self.console)


class ScriptedDecisions:
    """Deterministic answers, for tests and unattended runs.

    Args:
        answers: Answers to yes/no questions, matched by a substring of the
            question. Unmatched questions get ``default``.
        choices: Menu choices returned in order.
        default: Answer for unmatched questions.
    """

    def __init__(
        self,
        answers: Optional[Dict[str, bool]] = None,
        choices: Iterable[int] = (),
        default: bool = False,
    ) -> None:
        self.answers = dict(answers or {})
        self.choices: List[int] = list(choices)
        self.default = default
        self.asked: List[str] = []

    def confirm(self, question: str, default: bool = False) -> bool:
        self.asked.append(question)
        for fragment, answer in self.answers.items():
            if fragment.lower() in question.lower():
                return answer
        return self.default

    def choose(self, title: str, options: Sequence[Tuple[int, str]]) -> int:
        self.asked.append(title)
        if not self.choices:
            return 0
        return self.choices.pop(0)

"""Typed outcomes for capture and restore steps."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .manifest import Category


class Status(str, Enum):
    """Result of a single capture or restore step."""

    CAPTURED = "captured"
    RESTORED = "restored"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    """What happened to one manifest entry or category step.

    Attributes:
        category: Category the step belongs to.
        subject: Path or label the step acted on.
        status: Result of the step.
        reason: Why the step was skipped or failed, if it was.
    """

    category: Category
    subject: str
    status: Status
    reason: Optional[str] = None

    @classmethod
    def captured(cls, category: Category, subject: str) -> Outcome:
        return cls(category, subject, Status.CAPTURED)

    @classmethod
    def restored(cls, category: Category, subject: str) -> Outcome:
        return cls(category, subject, Status.RESTORED)

    @classmethod
    def skipped(cls, category: Category, subject: str, reason: str) -> Outcome:
        return cls(category, subject, Status.SKIPPED, reason)

    @classmethod
    def failed(cls, category: Category, subject: str, reason: str) -> Outcome:
        return cls(category, subject, Status.FAILED, reason)

    @property
    def ok(self) -> bool:
        return self.status in (Status.CAPTURED, Status.RESTORED)


@dataclass
class RunSummary:
    """Aggregated outcomes of a backup or restore run."""

    outcomes: List[Outcome] = field(default_factory=list)

    def add(self, outcome: Outcome) -> Outcome:
        self.outcomes.append(outcome)
        return outcome

    def extend(self, outcomes: List[Outcome]) -> None:
        self.outcomes.extend(outcomes)

    def with_status(self, status: Status) -> List[Outcome]:
        return [o for o in self.outcomes if o.status is status]

    @property
    def captured(self) -> List[Outcome]:
        return self.with_status(Status.CAPTURED)

    @property
    def restored(self) -> List[Outcome]:
        return self.with_status(Status.RESTORED)

    @property
    def skipped(self) -> List[Outcome]:
        return self.with_status(Status.SKIPPED)

    @property
    def failed(self) -> List[Outcome]:
        return self.with_status(Status.FAILED)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    def by_category(self) -> Dict[Category, List[Outcome]]:
        """Group outcomes by category, in manifest order."""
        grouped: Dict[Category, List[Outcome]] = {}
        for category in Category:
            matching = [o for o in self.outcomes if o.category is category]
            if matching:
                grouped[category] = matching
        return grouped

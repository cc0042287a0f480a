"""
Calculation Audit Trail
An ordered, append-only ledger of calculation steps. Each entry records the
arithmetic that was performed, its result and the regulation that justifies it.

Entries are numbered from 1 in the order they are recorded. The recorder has
no way to edit, reorder or remove an entry once it is appended.
"""

from dataclasses import dataclass
from decimal import Decimal

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StepOutcome:
    """A calculation step before it has been given its place in the ledger."""

    description: str
    calculation: str
    result: Decimal
    regulation: str
    notes: str | None = None


@dataclass(frozen=True)
class AuditTrailEntry:
    step: int
    description: str
    calculation: str
    result: Decimal
    regulation: str
    notes: str | None = None

    def to_dict(self) -> dict:
        data = {
            "step": self.step,
            "description": self.description,
            "calculation": self.calculation,
            "result": str(self.result),
            "regulation": self.regulation,
        }
        if self.notes:
            data["notes"] = self.notes
        return data


class AuditTrailRecorder:
    def __init__(self, calculation: str = "calculation"):
        self._calculation = calculation
        self._entries: list[AuditTrailEntry] = []

    def record(self, outcome: StepOutcome) -> AuditTrailEntry:
        entry = AuditTrailEntry(
            step=len(self._entries) + 1,
            description=outcome.description,
            calculation=outcome.calculation,
            result=outcome.result,
            regulation=outcome.regulation,
            notes=outcome.notes,
        )
        self._entries.append(entry)
        logger.debug(
            "calculation_step",
            calculation=self._calculation,
            step=entry.step,
            description=entry.description,
            result=str(entry.result),
            regulation=entry.regulation,
        )
        return entry

    @property
    def entries(self) -> tuple[AuditTrailEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

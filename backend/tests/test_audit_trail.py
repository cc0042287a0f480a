"""
Tests for the calculation audit trail recorder.
"""

from decimal import Decimal

import pytest
from app.core.tax_rules.audit_trail import AuditTrailRecorder, StepOutcome


def outcome(result, notes=None):
    return StepOutcome(
        description="Step",
        calculation=f"x = {result}",
        result=Decimal(result),
        regulation="UAE CIT Law Article 5",
        notes=notes,
    )


class TestAuditTrailRecorder:
    def test_entries_numbered_in_order(self):
        recorder = AuditTrailRecorder()
        recorder.record(outcome(1))
        recorder.record(outcome(2))
        recorder.record(outcome(3))
        assert [e.step for e in recorder.entries] == [1, 2, 3]
        assert [e.result for e in recorder.entries] == [1, 2, 3]
        assert len(recorder) == 3

    def test_entries_cannot_be_edited(self):
        recorder = AuditTrailRecorder()
        entry = recorder.record(outcome(1))
        with pytest.raises(AttributeError):
            entry.result = Decimal("5")
        assert isinstance(recorder.entries, tuple)

    def test_to_dict(self):
        entry = AuditTrailRecorder().record(outcome("2250.00"))
        assert entry.to_dict() == {
            "step": 1,
            "description": "Step",
            "calculation": "x = 2250.00",
            "result": "2250.00",
            "regulation": "UAE CIT Law Article 5",
        }

    def test_to_dict_includes_notes(self):
        entry = AuditTrailRecorder().record(outcome(0, notes="Nil position"))
        assert entry.to_dict()["notes"] == "Nil position"

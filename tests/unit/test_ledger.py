"""Unit tests for the queue and audit ledgers."""

import dataclasses

import pytest

from chkd.errors import InvalidInput, NotFound
from chkd.ledger import AuditLedger, QueueLedger


class TestQueueLedger:
    """Deferred requests."""

    def test_enqueue_and_list(self):
        queue = QueueLedger()
        first = queue.enqueue("Fix typo in footer", now=10.0)
        queue.enqueue("Check mobile layout", now=11.0)

        assert len(queue) == 2
        assert [item.title for item in queue.items()] == ["Fix typo in footer", "Check mobile layout"]
        assert first.id.startswith("q-")
        assert first.created_at == 10.0

    def test_items_returns_a_copy(self):
        queue = QueueLedger()
        queue.enqueue("One", now=0.0)
        queue.items().clear()
        assert len(queue) == 1

    def test_drain_all_empties_queue(self):
        queue = QueueLedger()
        for title in ("a", "b", "c"):
            queue.enqueue(title, now=0.0)

        drained = queue.drain_all()

        assert [item.title for item in drained] == ["a", "b", "c"]
        assert len(queue) == 0
        assert queue.drain_all() == []

    def test_remove_by_id(self):
        queue = QueueLedger()
        keep = queue.enqueue("keep", now=0.0)
        drop = queue.enqueue("drop", now=0.0)
        assert queue.remove(drop.id) == drop
        assert queue.items() == [keep]

    def test_remove_unknown(self):
        with pytest.raises(NotFound):
            QueueLedger().remove("q-missing")

    def test_blank_title_rejected(self):
        with pytest.raises(InvalidInput):
            QueueLedger().enqueue("   ", now=0.0)


class TestAuditLedger:
    """Write-once audit records."""

    def test_record_deviation(self):
        audit = AuditLedger()
        deviation = audit.record_deviation("Add dark mode", "rejected", now=5.0, task_id="sd-landing-page")
        assert audit.deviations == [deviation]
        assert deviation.to_dict()["handled"] == "rejected"

    def test_unknown_outcome_rejected(self):
        with pytest.raises(InvalidInput):
            AuditLedger().record_deviation("Add dark mode", "ignored", now=0.0)

    def test_also_did(self):
        audit = AuditLedger()
        record = audit.record_also_did("Refactored nav", "sd-landing-page", now=3.0)
        assert record.kind == "also-did"
        assert record.added_during_task == "sd-landing-page"
        assert audit.also_did == [record]

    def test_scope_change(self):
        audit = AuditLedger()
        change = audit.record_scope_change("added", "sd-pricing", "Pricing", now=1.0)
        assert audit.scope_changes == [change]

    def test_records_are_immutable(self):
        record = AuditLedger().record_also_did("Refactored nav", None, now=0.0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            record.title = "changed"

    def test_lists_are_copies(self):
        audit = AuditLedger()
        audit.record_deviation("x", "added", now=0.0)
        audit.deviations.clear()
        assert len(audit.deviations) == 1

    def test_to_dict(self):
        audit = AuditLedger()
        audit.record_deviation("x", "allowed", now=0.0)
        data = audit.to_dict()
        assert len(data["deviations"]) == 1
        assert data["also_did"] == []
        assert data["scope_changes"] == []

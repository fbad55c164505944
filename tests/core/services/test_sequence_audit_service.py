"""Tests for SequenceAuditService with mocked collaborators."""

from unittest.mock import Mock

import pytest

from core.audit import AuditLogger, AuditAction
from core.config import InvoicingConfig
from core.event_bus import EventBus
from core.events import NumberingLineResequenced
from core.exceptions import ConfigurationError, DuplicateNumberError
from core.models import NumberingLine, NumberingCounter
from core.services.numbering_service import NumberingService
from core.services.sequence_audit_service import SequenceAuditService, RESEQUENCE_REASON
from core.services.sequence_ledger import SequenceLedger


@pytest.fixture
def ledger():
    ledger = Mock(spec=SequenceLedger)
    ledger.get_counter.side_effect = lambda line: NumberingCounter(
        line=line,
        prefix={"taxable": "INV", "exempt": "EINV", "write_off": "WO"}[line.value],
        next_value=5,
    )
    return ledger


@pytest.fixture
def numbering():
    return Mock(spec=NumberingService)


@pytest.fixture
def audit():
    return Mock(spec=AuditLogger)


@pytest.fixture
def event_bus():
    return Mock(spec=EventBus)


@pytest.fixture
def service(mock_db, ledger, numbering, audit, event_bus):
    return SequenceAuditService(mock_db, ledger, numbering, audit, event_bus)


def _rows(*pairs):
    return [{"id": invoice_id, "invoice_number": number} for invoice_id, number in pairs]


class TestDetectGaps:

    def test_reports_missing_numbers(self, service, mock_db):
        mock_db.execute.return_value = [
            {"invoice_number": "INV-0001", "status": "sent"},
            {"invoice_number": "INV-0002", "status": "paid"},
            {"invoice_number": "INV-0004", "status": "draft"},
        ]

        report = service.detect_gaps(NumberingLine.TAXABLE)

        assert report.missing_numbers == ["INV-0003"]
        assert report.highest_number == 4
        assert report.total_issued == 3
        assert report.counter_next_value == 5

    def test_selects_by_line_prefix(self, service, mock_db):
        mock_db.execute.return_value = []

        service.detect_gaps(NumberingLine.EXEMPT)

        assert mock_db.execute.call_args[0][1] == ("EINV-%",)

    def test_is_read_only(self, service, mock_db, numbering, audit):
        mock_db.execute.return_value = [{"invoice_number": "INV-0003", "status": "sent"}]

        service.detect_gaps(NumberingLine.TAXABLE)

        numbering.renumber.assert_not_called()
        audit.log_change.assert_not_called()
        mock_db.transaction.assert_not_called()

    def test_missing_listing_capped_by_config(self, mock_db, ledger, numbering, audit, event_bus):
        service = SequenceAuditService(
            mock_db, ledger, numbering, audit, event_bus,
            InvoicingConfig(max_reported_missing_numbers=2),
        )
        mock_db.execute.return_value = [{"invoice_number": "INV-0010", "status": "sent"}]

        report = service.detect_gaps(NumberingLine.TAXABLE)

        assert report.missing_numbers == ["INV-0001", "INV-0002"]
        assert report.missing_count == 9

    def test_unprovisioned_line(self, service, ledger):
        ledger.get_counter.side_effect = ConfigurationError("No numbering counter")

        with pytest.raises(ConfigurationError):
            service.detect_gaps(NumberingLine.TAXABLE)


class TestResequence:

    def test_closes_gap_through_renumber(self, service, mock_db, numbering, audit, event_bus, test_actor_id):
        eligible = _rows((1, "INV-0001"), (2, "INV-0002"), (4, "INV-0004"))
        mock_db.execute.side_effect = [eligible, eligible]

        result = service.resequence(NumberingLine.TAXABLE, actor_id=test_actor_id)

        numbering.renumber.assert_called_once_with(
            4, "INV-0003", RESEQUENCE_REASON, actor_id=test_actor_id, allow_written_off=False,
        )
        assert [(c.invoice_id, c.new_number) for c in result.changes] == [(4, "INV-0003")]
        assert result.failures == []

        audit.log_change.assert_called_once()
        kwargs = audit.log_change.call_args.kwargs
        assert kwargs["entity_type"] == "numbering_line"
        assert kwargs["entity_id"] == "taxable"
        assert kwargs["action"] == AuditAction.RESEQUENCE
        assert kwargs["changes"]["changes"] == [
            {"invoice_id": 4, "old_number": "INV-0004", "new_number": "INV-0003"},
        ]
        assert isinstance(event_bus.publish.call_args[0][0], NumberingLineResequenced)

    def test_eligibility_query_for_draft_lines(self, service, mock_db):
        mock_db.execute.side_effect = [[], []]

        service.resequence(NumberingLine.EXEMPT)

        query, params = mock_db.execute.call_args_list[0][0]
        assert "ORDER BY created_at ASC, id ASC" in query
        assert params == ("EINV-%", "draft", "submitted")

    def test_write_off_line_moves_written_off_invoices(self, service, mock_db, numbering):
        mock_db.execute.side_effect = [_rows((7, "WO-0002")), _rows((7, "WO-0002"))]

        service.resequence(NumberingLine.WRITE_OFF)

        assert mock_db.execute.call_args_list[0][0][1][1] == "written_off"
        assert numbering.renumber.call_args.kwargs["allow_written_off"] is True

    def test_write_off_line_refused_when_disabled(self, mock_db, ledger, numbering, audit, event_bus):
        service = SequenceAuditService(
            mock_db, ledger, numbering, audit, event_bus,
            InvoicingConfig(allow_write_off_resequence=False),
        )

        with pytest.raises(ValueError, match="disabled"):
            service.resequence(NumberingLine.WRITE_OFF)

        numbering.renumber.assert_not_called()

    def test_numbers_held_by_other_invoices_are_skipped(self, service, mock_db, numbering, audit):
        """Drafts at 0005..0007 behind sent 0001..0004 stay where they are."""
        eligible = _rows((5, "INV-0005"), (6, "INV-0006"), (7, "INV-0007"))
        sent = _rows((101, "INV-0001"), (102, "INV-0002"), (103, "INV-0003"), (104, "INV-0004"))
        mock_db.execute.side_effect = [eligible, sent + eligible]

        result = service.resequence(NumberingLine.TAXABLE)

        assert result.changes == []
        numbering.renumber.assert_not_called()
        audit.log_change.assert_not_called()

    def test_sent_invoice_between_drafts_leaves_them_in_place(
        self, service, mock_db, numbering, audit, event_bus,
    ):
        """Drafts at 0005 and 0007 around a sent 0006 keep their numbers when starting at 5."""
        eligible = _rows((1, "INV-0005"), (2, "INV-0007"))
        mock_db.execute.side_effect = [eligible, eligible + _rows((99, "INV-0006"))]

        result = service.resequence(NumberingLine.TAXABLE, start=5)

        assert result.changes == []
        assert result.failures == []
        numbering.renumber.assert_not_called()
        audit.log_change.assert_not_called()
        event_bus.publish.assert_not_called()

    def test_failures_are_collected_and_run_continues(self, service, mock_db, numbering, audit):
        eligible = _rows((3, "INV-0005"), (4, "INV-0009"))
        mock_db.execute.side_effect = [eligible, eligible]
        numbering.renumber.side_effect = [DuplicateNumberError("INV-0001"), None]

        result = service.resequence(NumberingLine.TAXABLE)

        assert [(f.invoice_id, f.attempted_number) for f in result.failures] == [(3, "INV-0001")]
        assert "already in use" in result.failures[0].error
        assert [(c.invoice_id, c.new_number) for c in result.changes] == [(4, "INV-0002")]
        audit.log_change.assert_called_once()

    def test_start_below_one_rejected(self, service, mock_db):
        with pytest.raises(ValueError, match="at least 1"):
            service.resequence(NumberingLine.TAXABLE, start=0)

        mock_db.execute.assert_not_called()

    def test_custom_start(self, service, mock_db, numbering):
        eligible = _rows((1, "INV-0001"))
        mock_db.execute.side_effect = [eligible, eligible]

        result = service.resequence(NumberingLine.TAXABLE, start=50)

        assert result.start == 50
        assert numbering.renumber.call_args[0][1] == "INV-0050"

"""
Numbering service tests.

Covers pattern formatting (year token, zero-run counter slot, widening),
sequential issue per tenant and kind, and pattern changes that leave the
counter untouched.
"""

import pytest

from clinicpos.models import NumberingSequence, AuditLogEntry
from clinicpos.services.numbering_service import (
    KIND_CLIENT,
    KIND_INVOICE,
    KIND_RECEIPT,
    SequenceExhaustionWarning,
    counter_width,
    format_number,
    get_sequences,
    issue,
    issue_number,
    preview,
    set_pattern,
)
from clinicpos.validation import ValidationError


class TestFormatNumber:
    """Pure pattern rendering."""

    def test_rightmost_zero_run_is_the_counter(self):
        assert format_number("HH/INV/0000", 1) == "HH/INV/0001"
        assert format_number("A0-B000", 7) == "A0-B007"

    def test_year_token_any_case(self):
        assert format_number("REC-0000-year", 1, year=2026) == "REC-0001-2026"
        assert format_number("YEAR/00", 12, year=2026) == "2026/12"

    def test_zeros_inside_year_are_not_the_counter(self):
        assert format_number("INV-year", 3, year=2030) == "INV-20303"
        assert format_number("00-year", 4, year=2030) == "04-2030"

    def test_counter_wider_than_slot_is_printed_in_full(self):
        assert format_number("INV-0000", 10000) == "INV-10000"

    def test_no_zero_run_appends_counter(self):
        assert format_number("CL-", 5) == "CL-5"

    def test_empty_pattern_is_bare_counter(self):
        assert format_number("", 42) == "42"
        assert format_number(None, 42) == "42"

    def test_counter_width(self):
        assert counter_width("INV-0000") == 4
        assert counter_width("INV-") is None
        assert counter_width("0-year-000") == 3

    def test_preview_shows_first_number(self):
        assert preview("RCPT-0000") == "RCPT-0001"


class TestIssue:
    """Sequential issue against the database."""

    def test_three_invoices_in_call_order(self, db_session, tenant_a):
        numbers = [issue(tenant_a.id, KIND_INVOICE) for _ in range(3)]
        db_session.commit()

        assert numbers == ["INV-0001", "INV-0002", "INV-0003"]

    def test_kinds_have_independent_counters(self, db_session, tenant_a):
        assert issue(tenant_a.id, KIND_INVOICE) == "INV-0001"
        assert issue(tenant_a.id, KIND_RECEIPT) == "RCPT-0001"
        assert issue(tenant_a.id, KIND_INVOICE) == "INV-0002"

    def test_tenants_have_independent_counters(self, db_session, tenant_a, tenant_b):
        assert issue(tenant_a.id, KIND_CLIENT) == "CL-0001"
        assert issue(tenant_a.id, KIND_CLIENT) == "CL-0002"
        assert issue(tenant_b.id, KIND_CLIENT) == "CL-0001"

    def test_unknown_kind_rejected(self, db_session, tenant_a):
        with pytest.raises(ValidationError):
            issue(tenant_a.id, "purchase_order")

    def test_widening_warns(self, db_session, tenant_a):
        seq = db_session.query(NumberingSequence).filter_by(tenant_id=tenant_a.id, kind=KIND_INVOICE).one()
        seq.counter = 9999
        db_session.commit()

        with pytest.warns(SequenceExhaustionWarning):
            number = issue(tenant_a.id, KIND_INVOICE)

        assert number == "INV-10000"

    def test_rollback_returns_the_number(self, db_session, tenant_a):
        issue(tenant_a.id, KIND_INVOICE)
        db_session.rollback()

        assert issue(tenant_a.id, KIND_INVOICE) == "INV-0001"

    def test_issue_number_commits(self, db_session, tenant_a):
        assert issue_number(tenant_a.id, KIND_CLIENT) == "CL-0001"
        db_session.rollback()

        seq = db_session.query(NumberingSequence).filter_by(tenant_id=tenant_a.id, kind=KIND_CLIENT).one()
        assert seq.counter == 1


class TestSetPattern:
    """Changing a template keeps the counter."""

    def test_new_pattern_continues_counter(self, db_session, tenant_a, user_a):
        issue(tenant_a.id, KIND_INVOICE)
        issue(tenant_a.id, KIND_INVOICE)
        db_session.commit()

        set_pattern(tenant_a.id, KIND_INVOICE, "HP/INV/000000", actor=user_a)

        assert issue(tenant_a.id, KIND_INVOICE) == "HP/INV/000003"

    def test_pattern_change_is_audited(self, db_session, tenant_a, user_a):
        set_pattern(tenant_a.id, KIND_RECEIPT, "R-0000", actor=user_a)

        entry = db_session.query(AuditLogEntry).filter_by(
            tenant_id=tenant_a.id, action="Updated Numbering Pattern"
        ).one()
        assert entry.details == "receipt: RCPT-0000 -> R-0000"

    def test_blank_pattern_rejected(self, db_session, tenant_a):
        with pytest.raises(ValidationError):
            set_pattern(tenant_a.id, KIND_INVOICE, "   ")

    def test_get_sequences_lists_every_kind(self, db_session, tenant_a):
        kinds = {seq.kind for seq in get_sequences(tenant_a.id)}
        assert kinds == {"client", "invoice", "receipt", "patient"}

    def test_preview_does_not_consume(self, db_session, tenant_a):
        preview("INV-0000")
        preview("INV-0000")

        assert issue(tenant_a.id, KIND_INVOICE) == "INV-0001"

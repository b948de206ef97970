# Overview: Numbering authority; issues per-tenant, pattern-formatted document numbers.

"""
Numbering Service - sequential, prefix-templated identifiers per clinic

KINDS: client, invoice, receipt, patient

PATTERN RULES:
- The literal token "year" (any case) becomes the current 4-digit year.
- The rightmost run of "0" characters outside the year token is the counter
  slot; the counter is left-padded to the run's width.
  "HH/INV/0000" -> "HH/INV/0001", "REC-0000-year" -> "REC-0001-2026"
- A counter wider than its slot is printed in full ("INV-0000" at 10000 ->
  "INV-10000") and a SequenceExhaustionWarning is issued; numbers never wrap.
- A pattern with no zero run gets the counter appended; an empty pattern is
  the bare counter.

ATOMICITY: issue() increments the counter with a single UPDATE and reads it
back inside the caller's transaction, so the number is consumed exactly when
the surrounding document write commits and is never handed out twice.
"""

from __future__ import annotations

import re
import warnings

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ConcurrencyConflictError
from ..models import NumberingSequence, User
from ..time_utils import current_year
from ..validation import ValidationError
from .audit_service import append_audit_entry, CATEGORY_ADMIN
from .concurrency import begin_write, run_with_retry


KIND_CLIENT = "client"
KIND_INVOICE = "invoice"
KIND_RECEIPT = "receipt"
KIND_PATIENT = "patient"

DEFAULT_PATTERNS = {
    KIND_CLIENT: "CL-0000",
    KIND_INVOICE: "INV-0000",
    KIND_RECEIPT: "RCPT-0000",
    KIND_PATIENT: "PT-0000",
}

MAX_PATTERN_LENGTH = 64

_YEAR_TOKEN = re.compile(r"year", re.IGNORECASE)
_ZERO_RUN = re.compile(r"0+")


class SequenceExhaustionWarning(UserWarning):
    """Counter no longer fits its zero-run; the number is printed wider."""


def _validate_kind(kind: str) -> None:
    if kind not in DEFAULT_PATTERNS:
        raise ValidationError(f"Unknown numbering kind: {kind}. Must be one of {sorted(DEFAULT_PATTERNS)}")


def _counter_slot(segments: list[str]) -> tuple[int, re.Match] | None:
    for index in range(len(segments) - 1, -1, -1):
        runs = list(_ZERO_RUN.finditer(segments[index]))
        if runs:
            return index, runs[-1]
    return None


def counter_width(pattern: str | None) -> int | None:
    """Width of the counter slot in `pattern`, or None if it has none."""
    if not pattern:
        return None
    slot = _counter_slot(_YEAR_TOKEN.split(pattern))
    if slot is None:
        return None
    _, run = slot
    return run.end() - run.start()


def format_number(pattern: str | None, number: int, *, year: int | None = None) -> str:
    """Render `number` into `pattern`. Pure; never touches storage."""
    if not pattern:
        return str(number)

    year_text = str(year if year is not None else current_year())
    # Split on the year token first so zeros inside the substituted year
    # (e.g. 2030) are never mistaken for the counter slot.
    segments = _YEAR_TOKEN.split(pattern)
    slot = _counter_slot(segments)

    if slot is None:
        return year_text.join(segments) + str(number)

    index, run = slot
    width = run.end() - run.start()
    segment = segments[index]
    segments[index] = segment[:run.start()] + str(number).zfill(width) + segment[run.end():]
    return year_text.join(segments)


def preview(pattern: str | None) -> str:
    """What the first number issued under `pattern` would look like."""
    return format_number(pattern, 1)


def ensure_sequences(tenant_id: int) -> list[NumberingSequence]:
    """
    Create any missing sequence rows for a tenant with default patterns.

    Safe to call repeatedly (idempotent). No commit.
    """
    existing = {
        seq.kind: seq
        for seq in db.session.query(NumberingSequence).filter_by(tenant_id=tenant_id).all()
    }
    for kind, pattern in DEFAULT_PATTERNS.items():
        if kind not in existing:
            seq = NumberingSequence(tenant_id=tenant_id, kind=kind, pattern=pattern, counter=0)
            db.session.add(seq)
            existing[kind] = seq
    db.session.flush()
    return [existing[kind] for kind in DEFAULT_PATTERNS]


def issue(tenant_id: int, kind: str) -> str:
    """
    Consume the next number of (tenant_id, kind) and return it formatted.

    Each call consumes exactly one counter value. No commit: the caller's
    transaction owns the increment, so a rolled-back document write also
    rolls back its number.
    """
    _validate_kind(kind)

    stmt = (
        update(NumberingSequence)
        .where(
            NumberingSequence.tenant_id == tenant_id,
            NumberingSequence.kind == kind,
        )
        .values(counter=NumberingSequence.counter + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    if result.rowcount:
        counter, pattern = (
            db.session.query(NumberingSequence.counter, NumberingSequence.pattern)
            .filter_by(tenant_id=tenant_id, kind=kind)
            .one()
        )
    else:
        counter, pattern = 1, DEFAULT_PATTERNS[kind]
        db.session.add(NumberingSequence(tenant_id=tenant_id, kind=kind, pattern=pattern, counter=counter))
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConcurrencyConflictError(
                f"Numbering sequence '{kind}' was created concurrently",
                details={"kind": kind},
            ) from exc

    width = counter_width(pattern)
    if width is not None and len(str(counter)) > width:
        message = (
            f"Numbering pattern {pattern!r} for {kind} has {width} counter digits; "
            f"counter {counter} is printed wider"
        )
        current_app.logger.warning("Tenant %s: %s", tenant_id, message)
        warnings.warn(message, SequenceExhaustionWarning, stacklevel=2)

    return format_number(pattern, counter)


def get_sequences(tenant_id: int) -> list[NumberingSequence]:
    sequences = ensure_sequences(tenant_id)
    db.session.commit()
    return sequences


def issue_number(tenant_id: int, kind: str) -> str:
    """Issue a number outside any document write (e.g. patient numbers)."""
    def _op():
        begin_write()
        number = issue(tenant_id, kind)
        db.session.commit()
        return number

    return run_with_retry(_op)


def set_pattern(tenant_id: int, kind: str, pattern: str, actor: User | None = None) -> NumberingSequence:
    """
    Change the template of a sequence. The counter is untouched, so numbers
    already issued are never reissued under the new pattern.
    """
    _validate_kind(kind)

    pattern = (pattern or "").strip()
    if not pattern:
        raise ValidationError("pattern cannot be blank")
    if len(pattern) > MAX_PATTERN_LENGTH:
        raise ValidationError(f"pattern exceeds max length {MAX_PATTERN_LENGTH}")

    def _op():
        begin_write()
        ensure_sequences(tenant_id)
        seq = db.session.query(NumberingSequence).filter_by(tenant_id=tenant_id, kind=kind).one()
        previous = seq.pattern
        seq.pattern = pattern

        append_audit_entry(
            tenant_id=tenant_id,
            action="Updated Numbering Pattern",
            category=CATEGORY_ADMIN,
            actor=actor,
            entity_type="numbering_sequence",
            entity_id=seq.id,
            details=f"{kind}: {previous} -> {pattern}",
        )
        db.session.commit()
        return seq

    return run_with_retry(_op)

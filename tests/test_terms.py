"""Unit tests for term helpers and reference formatting."""

from dataclasses import dataclass
from datetime import date

import pytest

from fee_ledger.core.exceptions import ValidationError
from fee_ledger.core.reference import format_reference, parse_reference
from fee_ledger.core.terms import is_term_active, split_academic_year_term, term_status, validate_term


@dataclass
class Window:
    start_date: date
    end_date: date


TERM = Window(date(2026, 1, 5), date(2026, 4, 10))


def test_term_active_inclusive_of_both_ends() -> None:
    assert is_term_active(TERM, date(2026, 1, 5))
    assert is_term_active(TERM, date(2026, 4, 10))
    assert is_term_active(TERM, date(2026, 2, 20))


def test_term_inactive_outside_window() -> None:
    assert not is_term_active(TERM, date(2026, 1, 4))
    assert not is_term_active(TERM, date(2026, 4, 11))
    assert term_status(TERM, date(2026, 5, 1)) == "inactive"
    assert term_status(TERM, date(2026, 3, 1)) == "active"


def test_split_combined_period_at_last_dash() -> None:
    assert split_academic_year_term("2026-2027-term2") == ("2026-2027", "term2")
    assert split_academic_year_term(" 2026-term1 ") == ("2026", "term1")


def test_split_rejects_unknown_term() -> None:
    with pytest.raises(ValidationError):
        split_academic_year_term("2026-2027-term4")
    with pytest.raises(ValidationError):
        split_academic_year_term("term2")


def test_validate_term_normalises_case() -> None:
    assert validate_term(" Term3 ") == "term3"
    with pytest.raises(ValidationError) as exc:
        validate_term(None)
    assert exc.value.status_code == 400


def test_reference_format_and_parse() -> None:
    assert format_reference("FEE", 123, 6) == "FEE-000123"
    assert parse_reference("FEE-000123") == 123
    assert parse_reference("RCP-1000000") == 1000000


def test_parse_reference_malformed_is_zero() -> None:
    assert parse_reference(None) == 0
    assert parse_reference("FEE") == 0
    assert parse_reference("FEE-12a") == 0

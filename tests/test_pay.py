import pytest

from catering.errors import NotFoundError, ValidationError
from catering.models import BillingModality
from catering.services.events import get_event
from catering.services.pay import (
    assign_staff,
    calculate_pay,
    event_staff_cost,
    list_assignments,
    modality_label,
    rate_help_text,
    requires_hours,
    settle_event,
    update_assignment_hours,
)
from catering.models import SettlementStatus
from .factories import make_event, make_staff


def test_per_hour_multiplies_rate_by_hours():
    assert calculate_pay(BillingModality.PER_HOUR, 23000, 8) == 184000


def test_per_hour_without_hours_pays_nothing():
    assert calculate_pay(BillingModality.PER_HOUR, 23000) == 0


@pytest.mark.parametrize(
    "modality",
    [
        BillingModality.FIXED_SHIFT_9H,
        BillingModality.FIXED_SHIFT_10H,
        BillingModality.NIGHT_SHIFT,
        BillingModality.PER_EVENT,
    ],
)
def test_fixed_modalities_ignore_hours(modality):
    assert calculate_pay(modality, 150000, 14, 20000) == 150000


def test_overtime_paid_only_past_ten_hours():
    m = BillingModality.SHIFT_UP_TO_10H_THEN_OVERTIME
    assert calculate_pay(m, 100000, 12, 15000) == 130000
    assert calculate_pay(m, 100000, 10, 15000) == 100000
    assert calculate_pay(m, 100000, 10.0001, 15000) == pytest.approx(100001.5)


def test_overtime_modality_without_hours_pays_base_rate():
    m = BillingModality.SHIFT_UP_TO_10H_THEN_OVERTIME
    assert calculate_pay(m, 100000) == 100000
    assert calculate_pay(m, 100000, 0, 15000) == 100000
    assert calculate_pay(m, 100000, 11) == 100000


def test_unknown_modality_pays_zero():
    assert calculate_pay("HOURLY_PLUS_TIPS", 50000, 8) == 0.0


def test_accepts_modality_strings():
    assert calculate_pay("PER_HOUR", 1000, 3) == 3000


def test_labels_and_hour_requirements():
    assert modality_label(BillingModality.PER_EVENT) == "Per event"
    assert modality_label("SOMETHING_ELSE") == "SOMETHING_ELSE"
    assert rate_help_text("PER_HOUR").startswith("Enter")
    assert requires_hours(BillingModality.PER_HOUR)
    assert requires_hours("SHIFT_UP_TO_10H_THEN_OVERTIME")
    assert not requires_hours(BillingModality.NIGHT_SHIFT)


def test_assignment_uses_staff_terms_by_default(conn):
    event_id = make_event(conn)
    staff_id = make_staff(conn, BillingModality.SHIFT_UP_TO_10H_THEN_OVERTIME, 100000, 15000)

    assign_staff(conn, event_id, staff_id, hours_worked=12)

    [row] = list_assignments(conn, event_id)
    assert row["billing_modality"] == "SHIFT_UP_TO_10H_THEN_OVERTIME"
    assert row["amount_owed"] == 130000
    assert event_staff_cost(conn, event_id) == 130000


def test_assignment_overrides_and_hours_update(conn):
    event_id = make_event(conn)
    staff_id = make_staff(conn, BillingModality.PER_EVENT, 180000)

    assignment_id = assign_staff(conn, event_id, staff_id, modality="PER_HOUR", base_rate=20000, hours_worked=5)
    assert event_staff_cost(conn, event_id) == 100000

    assert update_assignment_hours(conn, assignment_id, 7) == 140000
    assert event_staff_cost(conn, event_id) == 140000


def test_assignment_rejects_bad_input(conn):
    event_id = make_event(conn)
    staff_id = make_staff(conn)

    with pytest.raises(ValidationError):
        assign_staff(conn, event_id, staff_id, hours_worked=-1)
    with pytest.raises(ValidationError):
        assign_staff(conn, event_id, staff_id, modality="BOGUS")
    with pytest.raises(NotFoundError):
        assign_staff(conn, event_id, 9999)


def test_settle_event_only_once(conn):
    event_id = make_event(conn)

    settle_event(conn, event_id)
    assert get_event(conn, event_id).settlement_status is SettlementStatus.SETTLED

    with pytest.raises(ValidationError):
        settle_event(conn, event_id)

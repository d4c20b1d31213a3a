from __future__ import annotations

import logging
from typing import Optional

from catering.db import q, q_one, rowcount, x
from catering.errors import ValidationError
from catering.models import BillingModality, SettlementStatus, parse_enum

logger = logging.getLogger(__name__)

OVERTIME_THRESHOLD_HOURS = 10.0

MODALITY_LABELS = {
    BillingModality.PER_HOUR: "Per hour",
    BillingModality.FIXED_SHIFT_9H: "9h shift",
    BillingModality.FIXED_SHIFT_10H: "10h shift",
    BillingModality.SHIFT_UP_TO_10H_THEN_OVERTIME: "Shift up to 10h + overtime",
    BillingModality.NIGHT_SHIFT: "Night shift",
    BillingModality.PER_EVENT: "Per event",
}

MODALITY_DESCRIPTIONS = {
    BillingModality.PER_HOUR: "Paid for every hour worked",
    BillingModality.FIXED_SHIFT_9H: "Fixed rate for a 9 hour shift",
    BillingModality.FIXED_SHIFT_10H: "Fixed rate for a 10 hour shift",
    BillingModality.SHIFT_UP_TO_10H_THEN_OVERTIME: "Fixed rate up to 10h, overtime paid after that",
    BillingModality.NIGHT_SHIFT: "Fixed rate for night events",
    BillingModality.PER_EVENT: "Fixed rate for the whole event",
}

RATE_HELP_TEXT = {
    BillingModality.PER_HOUR: "Enter the rate per hour worked",
    BillingModality.FIXED_SHIFT_9H: "Enter the total for the 9 hour shift",
    BillingModality.FIXED_SHIFT_10H: "Enter the total for the 10 hour shift",
    BillingModality.SHIFT_UP_TO_10H_THEN_OVERTIME: "Enter the rate for a shift of up to 10 hours",
    BillingModality.NIGHT_SHIFT: "Enter the night shift rate",
    BillingModality.PER_EVENT: "Enter the fixed rate per event",
}

_FIXED_RATE = {
    BillingModality.FIXED_SHIFT_9H,
    BillingModality.FIXED_SHIFT_10H,
    BillingModality.NIGHT_SHIFT,
    BillingModality.PER_EVENT,
}


def _as_modality(modality) -> Optional[BillingModality]:
    if isinstance(modality, BillingModality):
        return modality
    try:
        return BillingModality(str(modality))
    except ValueError:
        return None


def calculate_pay(
    modality,
    base_rate: float,
    hours_worked: Optional[float] = None,
    overtime_rate: Optional[float] = None,
) -> float:
    """
    Amount owed to one staff member for one event.

    Pure and total: unknown modalities pay 0, missing hours/overtime count as 0
    (or fall back to the fixed rate). No rounding is applied here.
    """
    m = _as_modality(modality)
    rate = float(base_rate)

    if m is BillingModality.PER_HOUR:
        return rate * float(hours_worked or 0)

    if m in _FIXED_RATE:
        return rate

    if m is BillingModality.SHIFT_UP_TO_10H_THEN_OVERTIME:
        if not hours_worked:
            return rate
        hours = float(hours_worked)
        if hours <= OVERTIME_THRESHOLD_HOURS:
            return rate
        extra_hours = hours - OVERTIME_THRESHOLD_HOURS
        return rate + extra_hours * float(overtime_rate or 0)

    return 0.0


def modality_label(modality) -> str:
    m = _as_modality(modality)
    return MODALITY_LABELS.get(m, str(modality))


def modality_description(modality) -> str:
    return MODALITY_DESCRIPTIONS.get(_as_modality(modality), "")


def rate_help_text(modality) -> str:
    return RATE_HELP_TEXT.get(_as_modality(modality), "")


def requires_hours(modality) -> bool:
    m = _as_modality(modality)
    return m in (BillingModality.PER_HOUR, BillingModality.SHIFT_UP_TO_10H_THEN_OVERTIME)


# -------------------------
# Staff assignments
# -------------------------

def _check_non_negative(name: str, value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number.") from None
    if v < 0:
        raise ValidationError(f"{name} must be >= 0.")
    return v


def create_staff(
    conn,
    *,
    full_name: str,
    id_number: str,
    role: str,
    modality,
    base_rate: float,
    overtime_rate: float = 0.0,
) -> int:
    m = parse_enum(BillingModality, modality)
    rate = _check_non_negative("Base rate", base_rate)
    ot = _check_non_negative("Overtime rate", overtime_rate) or 0.0
    if not str(full_name).strip():
        raise ValidationError("Full name is required.")

    return x(
        conn,
        """
        INSERT INTO staff (full_name, id_number, role, billing_modality, base_rate, overtime_rate)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (str(full_name).strip(), str(id_number).strip(), str(role), m.value, float(rate), float(ot)),
    )


def list_staff(conn):
    return q(conn, "SELECT * FROM staff ORDER BY full_name")


def assign_staff(
    conn,
    event_id: int,
    staff_id: int,
    *,
    modality=None,
    base_rate: Optional[float] = None,
    hours_worked: Optional[float] = None,
    overtime_rate: Optional[float] = None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
) -> int:
    """
    Link a staff member to an event and store the amount owed.
    Modality and rates default to the staff member's own terms.
    """
    staff = q_one(conn, "SELECT * FROM staff WHERE id=?", (int(staff_id),), what="Staff member")
    q_one(conn, "SELECT id FROM events WHERE id=?", (int(event_id),), what="Event")

    m = parse_enum(BillingModality, modality if modality is not None else staff["billing_modality"])
    rate = _check_non_negative("Base rate", base_rate if base_rate is not None else staff["base_rate"])
    ot = _check_non_negative("Overtime rate", overtime_rate if overtime_rate is not None else staff["overtime_rate"])
    hours = _check_non_negative("Hours worked", hours_worked)

    amount = calculate_pay(m, rate, hours, ot)

    assignment_id = x(
        conn,
        """
        INSERT INTO staff_assignments (
            event_id, staff_id, billing_modality, base_rate, hours_worked, overtime_rate,
            start_time, end_time, amount_owed
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (int(event_id), int(staff_id), m.value, float(rate), hours, ot, start_time, end_time, float(amount)),
    )
    logger.info("Assigned staff %s to event %s (%s, owed %.2f)", staff_id, event_id, m.value, amount)
    return assignment_id


def update_assignment_hours(conn, assignment_id: int, hours_worked: Optional[float]) -> float:
    a = q_one(conn, "SELECT * FROM staff_assignments WHERE id=?", (int(assignment_id),), what="Assignment")
    hours = _check_non_negative("Hours worked", hours_worked)
    amount = calculate_pay(a["billing_modality"], a["base_rate"], hours, a["overtime_rate"])
    x(
        conn,
        "UPDATE staff_assignments SET hours_worked=?, amount_owed=? WHERE id=?",
        (hours, float(amount), int(assignment_id)),
    )
    return amount


def list_assignments(conn, event_id: int):
    return q(
        conn,
        """
        SELECT sa.*, s.full_name, s.role
        FROM staff_assignments sa
        JOIN staff s ON s.id = sa.staff_id
        WHERE sa.event_id=?
        ORDER BY s.full_name
        """,
        (int(event_id),),
    )


def event_staff_cost(conn, event_id: int) -> float:
    r = q(conn, "SELECT COALESCE(SUM(amount_owed),0) AS total FROM staff_assignments WHERE event_id=?", (int(event_id),))
    return float(r[0]["total"])


def settle_event(conn, event_id: int) -> None:
    ev = q_one(conn, "SELECT settlement_status FROM events WHERE id=?", (int(event_id),), what="Event")
    if parse_enum(SettlementStatus, ev["settlement_status"]) is SettlementStatus.SETTLED:
        raise ValidationError("Event staff pay is already settled.")

    n = rowcount(
        conn,
        "UPDATE events SET settlement_status=? WHERE id=? AND settlement_status=?",
        (SettlementStatus.SETTLED.value, int(event_id), SettlementStatus.PENDING.value),
    )
    if n != 1:
        raise ValidationError("Event staff pay is already settled.")
    logger.info("Settled staff pay for event %s", event_id)

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Mapping, Optional

from catering.db import q, q_one, transaction, x
from catering.errors import ValidationError
from catering.models import (
    EquipmentMovementType,
    Event,
    MovementType,
    OrderState,
    ReservationState,
    SettlementStatus,
    TransportState,
    parse_enum,
)
from catering.utils import iso_now, iso_today

logger = logging.getLogger(__name__)


def create_quotation(
    conn,
    *,
    name: str,
    number_of_guests: int,
    client_name: Optional[str] = None,
    event_date: Optional[str] = None,
) -> int:
    if int(number_of_guests) <= 0:
        raise ValidationError("Number of guests must be > 0.")
    return x(
        conn,
        """
        INSERT INTO quotations (name, client_name, number_of_guests, event_date, status, created_at)
        VALUES (?, ?, ?, ?, 'PENDING', ?)
        """,
        (str(name).strip(), client_name, int(number_of_guests), event_date, iso_now()),
    )


def create_event(
    conn,
    *,
    name: str,
    event_date: Optional[str] = None,
    location: str = "",
    quotation_id: Optional[int] = None,
    required_staff: int = 0,
    description: Optional[str] = None,
) -> int:
    if not str(name).strip():
        raise ValidationError("Event name is required.")
    return x(
        conn,
        """
        INSERT INTO events (name, location, event_date, description, quotation_id, required_staff, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            str(name).strip(),
            location or "",
            event_date or iso_today(),
            description,
            int(quotation_id) if quotation_id is not None else None,
            max(0, int(required_staff)),
            iso_now(),
        ),
    )


def list_quotations(conn):
    return q(conn, "SELECT * FROM quotations ORDER BY id DESC")


def get_event(conn, event_id: int) -> Event:
    return Event.from_row(q_one(conn, "SELECT * FROM events WHERE id=?", (int(event_id),), what="Event"))


def list_events(conn) -> list[Event]:
    return [Event.from_row(r) for r in q(conn, "SELECT * FROM events ORDER BY event_date DESC, id DESC")]


def number_of_guests(conn, event_id: int) -> int:
    """Guests from the event's quotation; 1 when the event has none."""
    rows = q(
        conn,
        """
        SELECT qt.number_of_guests
        FROM events e
        LEFT JOIN quotations qt ON qt.id = e.quotation_id
        WHERE e.id=?
        """,
        (int(event_id),),
    )
    if not rows or not rows[0]["number_of_guests"]:
        return 1
    return int(rows[0]["number_of_guests"])


def set_planned_dishes(conn, event_id: int, dishes: Mapping[int, float]) -> int:
    """Replace the planned dish list of an event (recipe_id -> planned quantity)."""
    get_event(conn, event_id)
    for recipe_id, qty in dishes.items():
        if float(qty) <= 0:
            raise ValidationError(f"Planned quantity for recipe {recipe_id} must be > 0.")

    with transaction(conn):
        x(conn, "DELETE FROM event_planned_dishes WHERE event_id=?", (int(event_id),))
        for recipe_id, qty in dishes.items():
            x(
                conn,
                "INSERT INTO event_planned_dishes (event_id, recipe_id, planned_quantity) VALUES (?, ?, ?)",
                (int(event_id), int(recipe_id), float(qty)),
            )
    return len(dishes)


def list_planned_dishes(conn, event_id: int):
    return q(
        conn,
        """
        SELECT pd.recipe_id, r.name, pd.planned_quantity
        FROM event_planned_dishes pd
        JOIN recipes r ON r.id = pd.recipe_id
        WHERE pd.event_id=?
        ORDER BY r.name
        """,
        (int(event_id),),
    )


# -------------------------
# Event checklist
# -------------------------

@dataclass
class ChecklistItem:
    key: str
    label: str
    completed: bool


@dataclass
class ChecklistData:
    assigned_staff: int
    required_staff: int
    order_state: Optional[OrderState]
    ingredients_dispatched: bool
    event_date: str
    settlement_status: SettlementStatus
    reservation_state: Optional[ReservationState] = None
    equipment_dispatched: bool = False
    transport_state: Optional[TransportState] = None


@dataclass
class ChecklistResult:
    items: list[ChecklistItem] = field(default_factory=list)
    completed_count: int = 0
    total_count: int = 0
    percent: int = 0


def compute_checklist(data: ChecklistData, today: Optional[date] = None) -> ChecklistResult:
    today = today or date.today()

    if data.required_staff > 0:
        staffed = data.assigned_staff >= data.required_staff
    else:
        staffed = data.assigned_staff > 0

    items = [
        ChecklistItem("staff_assigned", "Staff assigned", staffed),
        ChecklistItem(
            "order_generated",
            "Purchase order generated",
            data.order_state is not None and data.order_state is not OrderState.CANCELLED,
        ),
        ChecklistItem("order_purchased", "Purchases done", data.order_state is OrderState.PURCHASED),
        ChecklistItem(
            "equipment_confirmed",
            "Equipment confirmed",
            data.reservation_state in (ReservationState.CONFIRMED, ReservationState.RETURNED),
        ),
        ChecklistItem("ingredients_dispatched", "Ingredients dispatched", bool(data.ingredients_dispatched)),
        ChecklistItem(
            "transport_scheduled",
            "Transport scheduled",
            data.transport_state in (TransportState.SCHEDULED, TransportState.FINISHED),
        ),
        ChecklistItem("equipment_dispatched", "Equipment dispatched", bool(data.equipment_dispatched)),
        ChecklistItem("event_held", "Event held", date.fromisoformat(data.event_date[:10]) < today),
        ChecklistItem("equipment_returned", "Equipment returned", data.reservation_state is ReservationState.RETURNED),
        ChecklistItem("staff_settled", "Staff settled", data.settlement_status is SettlementStatus.SETTLED),
    ]

    done = sum(1 for i in items if i.completed)
    return ChecklistResult(
        items=items,
        completed_count=done,
        total_count=len(items),
        percent=int(round(done * 100 / len(items))),
    )


def load_checklist(conn, event_id: int, today: Optional[date] = None) -> ChecklistResult:
    ev = get_event(conn, event_id)

    assigned = q(conn, "SELECT COUNT(1) AS n FROM staff_assignments WHERE event_id=?", (ev.id,))[0]["n"]
    order = q(
        conn,
        "SELECT state FROM purchase_orders WHERE event_id=? AND state <> 'CANCELLED' ORDER BY id DESC LIMIT 1",
        (ev.id,),
    )
    used = q(
        conn,
        "SELECT 1 FROM inventory_movements WHERE event_id=? AND movement_type=? LIMIT 1",
        (ev.id, MovementType.USE.value),
    )
    reservation = q(conn, "SELECT state FROM equipment_reservations WHERE event_id=?", (ev.id,))
    sent = q(
        conn,
        "SELECT 1 FROM equipment_movements WHERE event_id=? AND movement_type=? LIMIT 1",
        (ev.id, EquipmentMovementType.OUTBOUND.value),
    )
    transport = q(conn, "SELECT state FROM transport_orders WHERE event_id=?", (ev.id,))

    data = ChecklistData(
        assigned_staff=int(assigned),
        required_staff=ev.required_staff,
        order_state=parse_enum(OrderState, order[0]["state"]) if order else None,
        ingredients_dispatched=bool(used),
        event_date=ev.event_date,
        settlement_status=ev.settlement_status,
        reservation_state=parse_enum(ReservationState, reservation[0]["state"]) if reservation else None,
        equipment_dispatched=bool(sent),
        transport_state=parse_enum(TransportState, transport[0]["state"]) if transport else None,
    )
    return compute_checklist(data, today=today)

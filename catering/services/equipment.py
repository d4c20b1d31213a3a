"""
Equipment (menaje) rental: catalogue, per-event reservations and the movements
that take equipment out to an event and bring it back.

Reservation lifecycle::

    DRAFT <-> CONFIRMED -> RETURNED
    DRAFT | CONFIRMED -> CANCELLED -> DRAFT

DRAFT and CONFIRMED reservations block their items for every date in
[start_date, end_date]. Dispatch books one OUTBOUND movement; the return books
one INBOUND movement whose losses come off the catalogue stock and closes the
reservation as RETURNED.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from catering.db import q, q_one, rowcount, transaction, x
from catering.errors import ValidationError
from catering.models import (
    Equipment,
    EquipmentMovement,
    EquipmentMovementLine,
    EquipmentMovementType,
    MovementState,
    Reservation,
    ReservationItem,
    ReservationState,
    parse_enum,
)
from catering.services.events import get_event
from catering.utils import iso_now, iso_today

logger = logging.getLogger(__name__)

_BLOCKING = (ReservationState.DRAFT.value, ReservationState.CONFIRMED.value)

_TRANSITIONS = {
    ReservationState.DRAFT: {ReservationState.CONFIRMED, ReservationState.CANCELLED},
    ReservationState.CONFIRMED: {ReservationState.DRAFT, ReservationState.CANCELLED},
    ReservationState.CANCELLED: {ReservationState.DRAFT},
    ReservationState.RETURNED: set(),
}


# -------------------------
# Catalogue
# -------------------------

def create_equipment(
    conn,
    *,
    name: str,
    stock_total: float,
    category: str = "",
    unit: str = "und",
    rental_price: float = 0.0,
) -> int:
    if not str(name).strip():
        raise ValidationError("Equipment name is required.")
    if float(stock_total) < 0:
        raise ValidationError("Stock must be >= 0.")
    if float(rental_price) < 0:
        raise ValidationError("Rental price must be >= 0.")
    return x(
        conn,
        """
        INSERT INTO equipment (name, category, unit, stock_total, rental_price, active, created_at)
        VALUES (?, ?, ?, ?, ?, 1, ?)
        """,
        (str(name).strip(), str(category or "").strip(), str(unit or "und").strip(), float(stock_total), float(rental_price), iso_now()),
    )


def update_equipment(
    conn,
    equipment_id: int,
    *,
    stock_total: Optional[float] = None,
    rental_price: Optional[float] = None,
    active: Optional[bool] = None,
) -> Equipment:
    current = get_equipment(conn, equipment_id)
    stock = current.stock_total if stock_total is None else float(stock_total)
    price = current.rental_price if rental_price is None else float(rental_price)
    if stock < 0:
        raise ValidationError("Stock must be >= 0.")
    if price < 0:
        raise ValidationError("Rental price must be >= 0.")
    x(
        conn,
        "UPDATE equipment SET stock_total=?, rental_price=?, active=? WHERE id=?",
        (stock, price, int(current.active if active is None else bool(active)), current.id),
    )
    return get_equipment(conn, equipment_id)


def get_equipment(conn, equipment_id: int) -> Equipment:
    return Equipment.from_row(q_one(conn, "SELECT * FROM equipment WHERE id=?", (int(equipment_id),), what="Equipment"))


def list_equipment(conn, *, active_only: bool = False) -> list[Equipment]:
    sql = "SELECT * FROM equipment"
    if active_only:
        sql += " WHERE active=1"
    return [Equipment.from_row(r) for r in q(conn, sql + " ORDER BY category, name")]


def delete_equipment(conn, equipment_id: int) -> None:
    """Equipment that was ever reserved or moved is deactivated instead."""
    get_equipment(conn, equipment_id)
    used = q(
        conn,
        """
        SELECT 1 FROM equipment_reservation_items WHERE equipment_id=?
        UNION ALL SELECT 1 FROM equipment_movement_lines WHERE equipment_id=?
        LIMIT 1
        """,
        (int(equipment_id), int(equipment_id)),
    )
    if used:
        raise ValidationError("Equipment has reservations or movements; deactivate it instead.")
    x(conn, "DELETE FROM equipment WHERE id=?", (int(equipment_id),))


# -------------------------
# Availability
# -------------------------

@dataclass
class Availability:
    equipment_id: int
    name: str
    category: str
    unit: str
    stock_total: float
    reserved: float
    available: float


def _check_range(start_date: str, end_date: str) -> None:
    if not start_date or not end_date:
        raise ValidationError("Start and end dates are required.")
    if str(end_date) < str(start_date):
        raise ValidationError("End date must be on or after the start date.")


def available_equipment(
    conn, start_date: str, end_date: str, *, exclude_reservation_id: Optional[int] = None
) -> list[Availability]:
    """
    Stock left for [start_date, end_date]: catalogue stock minus what DRAFT and
    CONFIRMED reservations overlapping the range already hold.
    """
    _check_range(start_date, end_date)
    states = ",".join("?" for _ in _BLOCKING)
    rows = q(
        conn,
        f"""
        SELECT e.id, e.name, e.category, e.unit, e.stock_total,
               COALESCE((
                   SELECT SUM(ri.quantity)
                   FROM equipment_reservation_items ri
                   JOIN equipment_reservations r ON r.id = ri.reservation_id
                   WHERE ri.equipment_id = e.id
                     AND r.state IN ({states})
                     AND r.start_date <= ? AND r.end_date >= ?
                     AND r.id <> ?
               ), 0) AS reserved
        FROM equipment e
        WHERE e.active = 1
        ORDER BY e.category, e.name
        """,
        (*_BLOCKING, str(end_date)[:10], str(start_date)[:10], int(exclude_reservation_id or -1)),
    )
    out = []
    for r in rows:
        stock = float(r["stock_total"])
        reserved = float(r["reserved"])
        out.append(
            Availability(
                equipment_id=int(r["id"]),
                name=str(r["name"]),
                category=str(r["category"] or ""),
                unit=str(r["unit"]),
                stock_total=stock,
                reserved=reserved,
                available=max(0.0, stock - reserved),
            )
        )
    return out


def _check_availability(conn, reservation: Reservation, items: Mapping[int, float]) -> None:
    free = {
        a.equipment_id: a
        for a in available_equipment(
            conn, reservation.start_date, reservation.end_date, exclude_reservation_id=reservation.id
        )
    }
    short = []
    for equipment_id, qty in items.items():
        a = free.get(int(equipment_id))
        if a is None:
            raise ValidationError(f"Equipment {equipment_id} is not active.")
        if float(qty) > a.available:
            short.append(f"{a.name} ({qty:g} requested, {a.available:g} available)")
    if short:
        raise ValidationError("Not enough equipment for those dates: " + "; ".join(short))


# -------------------------
# Reservations
# -------------------------

def get_reservation(conn, event_id: int) -> Optional[Reservation]:
    rows = q(conn, "SELECT * FROM equipment_reservations WHERE event_id=?", (int(event_id),))
    if not rows:
        return None
    return _with_items(conn, rows[0])


def get_reservation_by_id(conn, reservation_id: int) -> Reservation:
    r = q_one(conn, "SELECT * FROM equipment_reservations WHERE id=?", (int(reservation_id),), what="Reservation")
    return _with_items(conn, r)


def _with_items(conn, r) -> Reservation:
    items = q(
        conn,
        "SELECT equipment_id, quantity FROM equipment_reservation_items WHERE reservation_id=? ORDER BY id",
        (int(r["id"]),),
    )
    return Reservation.from_row(r, [ReservationItem(int(i["equipment_id"]), float(i["quantity"])) for i in items])


def get_or_create_reservation(conn, event_id: int) -> Reservation:
    """The event's reservation; a new one is a DRAFT covering the event date."""
    ev = get_event(conn, event_id)
    with transaction(conn):
        existing = get_reservation(conn, ev.id)
        if existing is not None:
            return existing
        day = ev.event_date[:10]
        now = iso_now()
        x(
            conn,
            """
            INSERT INTO equipment_reservations (event_id, start_date, end_date, state, created_at, updated_at)
            VALUES (?, ?, ?, 'DRAFT', ?, ?)
            """,
            (ev.id, day, day, now, now),
        )
        return get_reservation(conn, ev.id)


def _editable(conn, reservation: Reservation) -> None:
    if reservation.state not in (ReservationState.DRAFT, ReservationState.CONFIRMED):
        raise ValidationError(f"A {reservation.state.value.lower()} reservation cannot change.")
    if is_equipment_dispatched(conn, reservation.event_id):
        raise ValidationError("Equipment was already dispatched for this event.")


def save_reservation_items(conn, reservation_id: int, items: Mapping[int, float]) -> Reservation:
    """Replace the reserved quantities (equipment_id -> quantity). Zero quantities drop the item."""
    for equipment_id, qty in items.items():
        if float(qty) < 0:
            raise ValidationError(f"Quantity for equipment {equipment_id} must be >= 0.")
    kept = {int(k): float(v) for k, v in items.items() if float(v) > 0}

    with transaction(conn):
        reservation = get_reservation_by_id(conn, reservation_id)
        _editable(conn, reservation)
        _check_availability(conn, reservation, kept)

        x(conn, "DELETE FROM equipment_reservation_items WHERE reservation_id=?", (reservation.id,))
        for equipment_id, qty in kept.items():
            x(
                conn,
                "INSERT INTO equipment_reservation_items (reservation_id, equipment_id, quantity) VALUES (?, ?, ?)",
                (reservation.id, equipment_id, qty),
            )
        x(conn, "UPDATE equipment_reservations SET updated_at=? WHERE id=?", (iso_now(), reservation.id))
    return get_reservation_by_id(conn, reservation_id)


def set_reservation_dates(conn, reservation_id: int, start_date: str, end_date: str) -> Reservation:
    _check_range(start_date, end_date)
    with transaction(conn):
        reservation = get_reservation_by_id(conn, reservation_id)
        _editable(conn, reservation)
        reservation.start_date, reservation.end_date = str(start_date)[:10], str(end_date)[:10]
        _check_availability(conn, reservation, {i.equipment_id: i.quantity for i in reservation.items})
        x(
            conn,
            "UPDATE equipment_reservations SET start_date=?, end_date=?, updated_at=? WHERE id=?",
            (reservation.start_date, reservation.end_date, iso_now(), reservation.id),
        )
    return get_reservation_by_id(conn, reservation_id)


def set_reservation_state(conn, reservation_id: int, state) -> Reservation:
    """Manual transitions. RETURNED is reached only through return_equipment."""
    target = parse_enum(ReservationState, state)
    with transaction(conn):
        reservation = get_reservation_by_id(conn, reservation_id)
        if target not in _TRANSITIONS[reservation.state]:
            raise ValidationError(f"Cannot move reservation from {reservation.state.value} to {target.value}.")
        if is_equipment_dispatched(conn, reservation.event_id):
            raise ValidationError("Equipment was already dispatched for this event.")
        if target is ReservationState.DRAFT and reservation.state is ReservationState.CANCELLED:
            # Reopening blocks the items again.
            _check_availability(conn, reservation, {i.equipment_id: i.quantity for i in reservation.items})
        x(
            conn,
            "UPDATE equipment_reservations SET state=?, updated_at=? WHERE id=?",
            (target.value, iso_now(), reservation.id),
        )
    logger.info("Reservation %s: %s -> %s", reservation_id, reservation.state.value, target.value)
    return get_reservation_by_id(conn, reservation_id)


def reservation_calendar(conn, start_date: str, end_date: str):
    """Reservations lying inside [start_date, end_date], with event names and item counts."""
    return q(
        conn,
        """
        SELECT r.id AS reservation_id, r.event_id, e.name AS event, r.start_date, r.end_date, r.state,
               COUNT(ri.id) AS items, COALESCE(SUM(ri.quantity), 0) AS units
        FROM equipment_reservations r
        JOIN events e ON e.id = r.event_id
        LEFT JOIN equipment_reservation_items ri ON ri.reservation_id = r.id
        WHERE r.start_date >= ? AND r.end_date <= ?
        GROUP BY r.id
        ORDER BY r.start_date, r.id
        """,
        (str(start_date)[:10], str(end_date)[:10]),
    )


# -------------------------
# Movements
# -------------------------

def create_equipment_movement(
    conn,
    movement_type,
    lines: Iterable[EquipmentMovementLine],
    *,
    event_id: Optional[int] = None,
    reservation_id: Optional[int] = None,
    notes: Optional[str] = None,
    movement_date: Optional[str] = None,
    confirm: bool = False,
) -> int:
    mt = parse_enum(EquipmentMovementType, movement_type)
    lines = list(lines)
    if not lines:
        raise ValidationError("At least one movement line is required.")
    for line in lines:
        if float(line.quantity) < 0 or float(line.loss or 0) < 0:
            raise ValidationError("Quantities and losses must be >= 0.")
        if mt is EquipmentMovementType.OUTBOUND and float(line.loss or 0) > 0:
            raise ValidationError("Losses are recorded on the return.")

    with transaction(conn):
        movement_id = x(
            conn,
            """
            INSERT INTO equipment_movements (
                movement_type, state, movement_date, event_id, reservation_id, notes, created_at
            ) VALUES (?, 'DRAFT', ?, ?, ?, ?, ?)
            """,
            (
                mt.value,
                movement_date or iso_today(),
                int(event_id) if event_id is not None else None,
                int(reservation_id) if reservation_id is not None else None,
                (notes or "").strip() or None,
                iso_now(),
            ),
        )
        for line in lines:
            x(
                conn,
                "INSERT INTO equipment_movement_lines (movement_id, equipment_id, quantity, loss) VALUES (?, ?, ?, ?)",
                (movement_id, int(line.equipment_id), float(line.quantity), float(line.loss or 0)),
            )
        if confirm:
            _apply_equipment_movement(conn, movement_id)
    return int(movement_id)


def _apply_equipment_movement(conn, movement_id: int) -> None:
    flipped = rowcount(
        conn,
        "UPDATE equipment_movements SET state='CONFIRMED', confirmed_at=? WHERE id=? AND state='DRAFT'",
        (iso_now(), int(movement_id)),
    )
    if flipped != 1:
        raise ValidationError("Movement is already confirmed.")

    movement = get_equipment_movement(conn, movement_id)
    if movement.movement_type is not EquipmentMovementType.INBOUND:
        return
    for line in movement.lines:
        if line.loss <= 0:
            continue
        eq = get_equipment(conn, line.equipment_id)
        new_stock = max(0.0, eq.stock_total - line.loss)
        x(conn, "UPDATE equipment SET stock_total=? WHERE id=?", (new_stock, eq.id))
        logger.info("Equipment %s lost %.2f on return: %.2f -> %.2f", eq.id, line.loss, eq.stock_total, new_stock)


def confirm_equipment_movement(conn, movement_id: int) -> EquipmentMovement:
    with transaction(conn):
        _apply_equipment_movement(conn, movement_id)
    return get_equipment_movement(conn, movement_id)


def delete_equipment_movement(conn, movement_id: int) -> None:
    get_equipment_movement(conn, movement_id)
    if rowcount(conn, "DELETE FROM equipment_movements WHERE id=? AND state='DRAFT'", (int(movement_id),)) != 1:
        raise ValidationError("Confirmed movements cannot be deleted.")


def get_equipment_movement(conn, movement_id: int) -> EquipmentMovement:
    r = q_one(conn, "SELECT * FROM equipment_movements WHERE id=?", (int(movement_id),), what="Movement")
    lines = q(conn, "SELECT * FROM equipment_movement_lines WHERE movement_id=? ORDER BY id", (int(movement_id),))
    return EquipmentMovement.from_row(r, [EquipmentMovementLine.from_row(l) for l in lines])


def list_equipment_movements(conn, *, event_id: Optional[int] = None) -> list[EquipmentMovement]:
    sql = "SELECT id FROM equipment_movements"
    params: list = []
    if event_id is not None:
        sql += " WHERE event_id=?"
        params.append(int(event_id))
    sql += " ORDER BY movement_date DESC, id DESC"
    return [get_equipment_movement(conn, int(r["id"])) for r in q(conn, sql, params)]


def is_equipment_dispatched(conn, event_id: int) -> bool:
    rows = q(
        conn,
        "SELECT 1 FROM equipment_movements WHERE event_id=? AND movement_type=? LIMIT 1",
        (int(event_id), EquipmentMovementType.OUTBOUND.value),
    )
    return bool(rows)


def dispatch_equipment(conn, event_id: int) -> int:
    """Send the event's CONFIRMED reservation out: one confirmed OUTBOUND movement. Once per event."""
    get_event(conn, event_id)
    with transaction(conn):
        if is_equipment_dispatched(conn, event_id):
            raise ValidationError("Equipment was already dispatched for this event.")
        reservation = get_reservation(conn, event_id)
        if reservation is None or reservation.state is not ReservationState.CONFIRMED:
            raise ValidationError("There is no confirmed equipment reservation for this event.")
        if not reservation.items:
            raise ValidationError("The reservation has no items.")

        movement_id = create_equipment_movement(
            conn,
            EquipmentMovementType.OUTBOUND,
            [EquipmentMovementLine(i.equipment_id, i.quantity) for i in reservation.items],
            event_id=int(event_id),
            reservation_id=reservation.id,
            notes="Equipment dispatch for event",
            confirm=True,
        )
    logger.info("Dispatched equipment for event %s (movement %s)", event_id, movement_id)
    return movement_id


def return_equipment(conn, event_id: int, returned: Optional[Mapping[int, float]] = None) -> int:
    """
    Bring dispatched equipment back. ``returned`` maps equipment_id to the
    quantity that came back (default: everything); the rest is a loss and comes
    off the catalogue stock. The reservation ends RETURNED.
    """
    returned = {int(k): float(v) for k, v in (returned or {}).items()}
    get_event(conn, event_id)
    with transaction(conn):
        reservation = get_reservation(conn, event_id)
        if reservation is None or not is_equipment_dispatched(conn, event_id):
            raise ValidationError("Equipment has not been dispatched for this event.")
        if reservation.state is not ReservationState.CONFIRMED:
            raise ValidationError(f"A {reservation.state.value.lower()} reservation cannot be returned.")

        reserved = {i.equipment_id: i.quantity for i in reservation.items}
        unknown = set(returned) - set(reserved)
        if unknown:
            raise ValidationError(f"Equipment {sorted(unknown)} is not part of this reservation.")

        lines = []
        for equipment_id, qty in reserved.items():
            back = returned.get(equipment_id, qty)
            if back < 0 or back > qty:
                raise ValidationError(f"Returned quantity for equipment {equipment_id} must be between 0 and {qty:g}.")
            lines.append(EquipmentMovementLine(equipment_id, back, loss=qty - back))

        movement_id = create_equipment_movement(
            conn,
            EquipmentMovementType.INBOUND,
            lines,
            event_id=int(event_id),
            reservation_id=reservation.id,
            notes="Equipment return for event",
            confirm=True,
        )
        n = rowcount(
            conn,
            "UPDATE equipment_reservations SET state='RETURNED', updated_at=? WHERE id=? AND state='CONFIRMED'",
            (iso_now(), reservation.id),
        )
        if n != 1:
            raise ValidationError("Reservation changed concurrently. Reload and try again.")
    logger.info("Equipment returned for event %s (movement %s)", event_id, movement_id)
    return movement_id

"""
Transport orders: one per event, describing the pickup, the cargo and the
delivery to the venue.

    DRAFT <-> SCHEDULED -> FINISHED
    DRAFT | SCHEDULED -> CANCELLED -> DRAFT
"""
from __future__ import annotations

import logging
import re
from typing import Optional

from catering.db import q, q_one, rowcount, transaction, x
from catering.errors import ValidationError
from catering.models import TRANSPORT_FIELDS, TransportOrder, TransportState, parse_enum
from catering.services.events import get_event
from catering.utils import iso_now

logger = logging.getLogger(__name__)

_TIME = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")

_TRANSITIONS = {
    TransportState.DRAFT: {TransportState.SCHEDULED, TransportState.CANCELLED},
    TransportState.SCHEDULED: {TransportState.DRAFT, TransportState.FINISHED, TransportState.CANCELLED},
    TransportState.CANCELLED: {TransportState.DRAFT},
    TransportState.FINISHED: set(),
}


def get_transport_order(conn, event_id: int) -> Optional[TransportOrder]:
    rows = q(conn, "SELECT * FROM transport_orders WHERE event_id=?", (int(event_id),))
    return TransportOrder.from_row(rows[0]) if rows else None


def get_transport_order_by_id(conn, order_id: int) -> TransportOrder:
    return TransportOrder.from_row(
        q_one(conn, "SELECT * FROM transport_orders WHERE id=?", (int(order_id),), what="Transport order")
    )


def get_or_create_transport_order(conn, event_id: int) -> TransportOrder:
    """The event's transport order; a new one is a DRAFT delivering to the event location."""
    ev = get_event(conn, event_id)
    with transaction(conn):
        existing = get_transport_order(conn, ev.id)
        if existing is not None:
            return existing
        now = iso_now()
        x(
            conn,
            """
            INSERT INTO transport_orders (event_id, state, destination_address, created_at, updated_at)
            VALUES (?, 'DRAFT', ?, ?, ?)
            """,
            (ev.id, ev.location or None, now, now),
        )
        return get_transport_order(conn, ev.id)


def save_transport_order(conn, order_id: int, **fields) -> TransportOrder:
    unknown = set(fields) - set(TRANSPORT_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown transport fields: {', '.join(sorted(unknown))}.")

    clean = {}
    for k, v in fields.items():
        v = str(v).strip() if v is not None else ""
        if k in ("unload_time", "pickup_time") and v and not _TIME.match(v):
            raise ValidationError(f"{k.replace('_', ' ').capitalize()} must look like HH:MM.")
        clean[k] = v or None
    if not clean:
        return get_transport_order_by_id(conn, order_id)

    with transaction(conn):
        order = get_transport_order_by_id(conn, order_id)
        if order.state in (TransportState.FINISHED, TransportState.CANCELLED):
            raise ValidationError(f"A {order.state.value.lower()} transport order cannot be edited.")
        sets = ", ".join(f"{k}=?" for k in clean)
        x(conn, f"UPDATE transport_orders SET {sets}, updated_at=? WHERE id=?", (*clean.values(), iso_now(), order.id))
    return get_transport_order_by_id(conn, order_id)


def set_transport_state(conn, order_id: int, state) -> TransportOrder:
    target = parse_enum(TransportState, state)
    order = get_transport_order_by_id(conn, order_id)
    if target not in _TRANSITIONS[order.state]:
        raise ValidationError(f"Cannot move transport order from {order.state.value} to {target.value}.")
    if target is TransportState.SCHEDULED and not (order.pickup_time and order.destination_address):
        raise ValidationError("Set a pickup time and destination before scheduling.")

    n = rowcount(
        conn,
        "UPDATE transport_orders SET state=?, updated_at=? WHERE id=? AND state=?",
        (target.value, iso_now(), order.id, order.state.value),
    )
    if n != 1:
        raise ValidationError("Transport order changed concurrently. Reload and try again.")
    logger.info("Transport order %s: %s -> %s", order.id, order.state.value, target.value)
    return get_transport_order_by_id(conn, order_id)


def list_transport_orders(conn):
    return q(
        conn,
        """
        SELECT t.id, t.event_id, e.name AS event, e.event_date, t.state,
               t.pickup_time, t.unload_time, t.destination_address, t.vehicle
        FROM transport_orders t
        JOIN events e ON e.id = t.event_id
        ORDER BY e.event_date DESC, t.id DESC
        """,
    )

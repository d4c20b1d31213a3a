"""
Per-event purchase orders and their effect on ingredient stock.

Lifecycle::

    DRAFT -> APPROVED -> PURCHASED
    DRAFT | APPROVED -> CANCELLED

PURCHASED and CANCELLED are terminal. Only a DRAFT can be regenerated or edited.
Marking an order purchased books one PURCHASE movement; dispatching an event's
ingredients books one USE movement. Both run inside a single write-locked
transaction, so the guard and the writes either all happen or none do.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from catering.config import DEFAULT_ROUNDING, Rounding
from catering.db import q, q_one, rowcount, transaction, x
from catering.errors import ValidationError
from catering.models import MovementLine, MovementType, OrderState, PurchaseOrder, PurchaseOrderLine, parse_enum
from catering.services.events import get_event, number_of_guests
from catering.services.inventory import create_movement
from catering.utils import iso_now, round_money, round_quantity

logger = logging.getLogger(__name__)

_TRANSITIONS = {
    OrderState.DRAFT: {OrderState.APPROVED, OrderState.CANCELLED},
    OrderState.APPROVED: {OrderState.PURCHASED, OrderState.CANCELLED},
    OrderState.PURCHASED: set(),
    OrderState.CANCELLED: set(),
}


@dataclass
class Requirement:
    ingredient_id: int
    name: str
    unit: str
    unit_cost: float
    in_stock: float
    needed: float = 0.0


# -------------------------
# Generation
# -------------------------

def compute_requirements(conn, event_id: int) -> dict[int, Requirement]:
    """
    Raw ingredient quantities an event needs, keyed by ingredient.

    per-guest qty = line qty / recipe servings; needed = per-guest qty x planned
    quantity x guests, summed over every planned dish using the ingredient.
    """
    guests = number_of_guests(conn, event_id)
    rows = q(
        conn,
        """
        SELECT pd.recipe_id, pd.planned_quantity, r.servings_per_batch,
               ril.ingredient_id, ril.quantity_per_batch,
               i.name, i.base_unit, i.cost_per_unit, i.current_stock
        FROM event_planned_dishes pd
        JOIN recipes r ON r.id = pd.recipe_id
        JOIN recipe_ingredient_lines ril ON ril.recipe_id = pd.recipe_id
        JOIN ingredients i ON i.id = ril.ingredient_id
        WHERE pd.event_id=?
        ORDER BY ril.id
        """,
        (int(event_id),),
    )

    agg: dict[int, Requirement] = {}
    for r in rows:
        servings = float(r["servings_per_batch"] or 0) or 1.0
        planned = float(r["planned_quantity"] or 0) or 1.0
        per_guest = float(r["quantity_per_batch"]) / servings
        needed = per_guest * planned * guests

        ing_id = int(r["ingredient_id"])
        if ing_id not in agg:
            agg[ing_id] = Requirement(
                ingredient_id=ing_id,
                name=str(r["name"]),
                unit=str(r["base_unit"]),
                unit_cost=float(r["cost_per_unit"] or 0),
                in_stock=float(r["current_stock"] or 0),
            )
        agg[ing_id].needed += needed
    return agg


def build_line_values(req: Requirement, rounding: Rounding = DEFAULT_ROUNDING) -> dict:
    quantity_needed = round_quantity(req.needed, rounding)
    quantity_to_buy = round_quantity(max(0.0, quantity_needed - req.in_stock), rounding)
    return {
        "ingredient_id": req.ingredient_id,
        "name": req.name,
        "unit": req.unit,
        "quantity_needed": quantity_needed,
        "quantity_in_stock": req.in_stock,
        "quantity_to_buy": quantity_to_buy,
        "unit_cost": req.unit_cost,
        "subtotal": round_money(quantity_to_buy * req.unit_cost, rounding),
    }


def _live_order_row(conn, event_id: int):
    rows = q(
        conn,
        """
        SELECT * FROM purchase_orders
        WHERE event_id=? AND state <> 'CANCELLED'
        ORDER BY created_at DESC, id DESC
        LIMIT 1
        """,
        (int(event_id),),
    )
    return rows[0] if rows else None


def _insert_order(conn, event_id: int, rounding: Rounding) -> int:
    lines = [build_line_values(req, rounding) for req in compute_requirements(conn, event_id).values()]
    lines.sort(key=lambda l: l["name"])
    total = round_money(sum(l["subtotal"] for l in lines), rounding)

    now = iso_now()
    order_id = x(
        conn,
        """
        INSERT INTO purchase_orders (event_id, state, estimated_total, created_at, updated_at)
        VALUES (?, 'DRAFT', ?, ?, ?)
        """,
        (int(event_id), float(total), now, now),
    )
    for l in lines:
        x(
            conn,
            """
            INSERT INTO purchase_order_lines (
                order_id, ingredient_id, name, unit,
                quantity_needed, quantity_in_stock, quantity_to_buy, unit_cost, subtotal
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(order_id),
                l["ingredient_id"],
                l["name"],
                l["unit"],
                l["quantity_needed"],
                l["quantity_in_stock"],
                l["quantity_to_buy"],
                l["unit_cost"],
                l["subtotal"],
            ),
        )

    logger.info("Generated purchase order %s for event %s: %d line(s), total %.2f", order_id, event_id, len(lines), total)
    return int(order_id)


def generate_order(conn, event_id: int, rounding: Rounding = DEFAULT_ROUNDING) -> PurchaseOrder:
    get_event(conn, event_id)
    with transaction(conn):
        live = _live_order_row(conn, event_id)
        if live is not None:
            raise ValidationError(
                f"Event already has a {live['state'].lower()} purchase order. Regenerate or cancel it first."
            )
        order_id = _insert_order(conn, event_id, rounding)
    return get_order_by_id(conn, order_id)


def regenerate_order(conn, event_id: int, rounding: Rounding = DEFAULT_ROUNDING) -> PurchaseOrder:
    """Drop the current DRAFT (and its lines) and generate again."""
    get_event(conn, event_id)
    with transaction(conn):
        live = _live_order_row(conn, event_id)
        if live is not None:
            if parse_enum(OrderState, live["state"]) is not OrderState.DRAFT:
                raise ValidationError("Only draft purchase orders can be regenerated.")
            x(conn, "DELETE FROM purchase_orders WHERE id=? AND state='DRAFT'", (int(live["id"]),))
        order_id = _insert_order(conn, event_id, rounding)
    return get_order_by_id(conn, order_id)


# -------------------------
# Reads
# -------------------------

def get_order_by_id(conn, order_id: int) -> PurchaseOrder:
    r = q_one(conn, "SELECT * FROM purchase_orders WHERE id=?", (int(order_id),), what="Purchase order")
    lines = q(conn, "SELECT * FROM purchase_order_lines WHERE order_id=? ORDER BY name, id", (int(order_id),))
    return PurchaseOrder.from_row(r, [PurchaseOrderLine.from_row(l) for l in lines])


def get_order(conn, event_id: int) -> Optional[PurchaseOrder]:
    """The event's newest non-cancelled order, or None."""
    live = _live_order_row(conn, event_id)
    if live is None:
        return None
    return get_order_by_id(conn, int(live["id"]))


def list_orders(conn):
    return q(
        conn,
        """
        SELECT po.id, e.name AS event, e.event_date, po.state, po.estimated_total, po.updated_at
        FROM purchase_orders po
        JOIN events e ON e.id = po.event_id
        ORDER BY po.id DESC
        """,
    )


# -------------------------
# Draft editing
# -------------------------

def update_line(
    conn,
    line_id: int,
    *,
    quantity_to_buy: Optional[float] = None,
    unit_cost: Optional[float] = None,
    rounding: Rounding = DEFAULT_ROUNDING,
) -> PurchaseOrderLine:
    """Edit a DRAFT line; the subtotal follows. The order total is NOT touched (see recalculate_total)."""
    line = PurchaseOrderLine.from_row(
        q_one(conn, "SELECT * FROM purchase_order_lines WHERE id=?", (int(line_id),), what="Order line")
    )
    qty = line.quantity_to_buy if quantity_to_buy is None else float(quantity_to_buy)
    cost = line.unit_cost if unit_cost is None else float(unit_cost)
    if qty < 0:
        raise ValidationError("Quantity to buy must be >= 0.")
    if cost < 0:
        raise ValidationError("Unit cost must be >= 0.")

    n = rowcount(
        conn,
        """
        UPDATE purchase_order_lines
        SET quantity_to_buy=?, unit_cost=?, subtotal=?
        WHERE id=? AND order_id IN (SELECT id FROM purchase_orders WHERE state='DRAFT')
        """,
        (qty, cost, round_money(qty * cost, rounding), int(line_id)),
    )
    if n != 1:
        raise ValidationError("Only lines of a draft purchase order can be edited.")

    return PurchaseOrderLine.from_row(q_one(conn, "SELECT * FROM purchase_order_lines WHERE id=?", (int(line_id),)))


def recalculate_total(conn, order_id: int, rounding: Rounding = DEFAULT_ROUNDING) -> float:
    order = get_order_by_id(conn, order_id)
    if order.state in (OrderState.PURCHASED, OrderState.CANCELLED):
        raise ValidationError(f"A {order.state.value.lower()} purchase order cannot change.")

    total = round_money(sum(l.subtotal for l in order.lines), rounding)
    x(
        conn,
        "UPDATE purchase_orders SET estimated_total=?, updated_at=? WHERE id=?",
        (float(total), iso_now(), int(order_id)),
    )
    return total


# -------------------------
# State transitions
# -------------------------

def _transition(conn, order_id: int, target: OrderState) -> PurchaseOrder:
    order = get_order_by_id(conn, order_id)
    if target not in _TRANSITIONS[order.state]:
        raise ValidationError(
            f"Cannot move purchase order from {order.state.value} to {target.value}."
        )

    n = rowcount(
        conn,
        "UPDATE purchase_orders SET state=?, updated_at=? WHERE id=? AND state=?",
        (target.value, iso_now(), int(order_id), order.state.value),
    )
    if n != 1:
        raise ValidationError("Purchase order changed concurrently. Reload and try again.")

    logger.info("Purchase order %s: %s -> %s", order_id, order.state.value, target.value)
    order.state = target
    return order


def approve_order(conn, order_id: int) -> PurchaseOrder:
    with transaction(conn):
        return _transition(conn, order_id, OrderState.APPROVED)


def cancel_order(conn, order_id: int) -> PurchaseOrder:
    with transaction(conn):
        return _transition(conn, order_id, OrderState.CANCELLED)


def mark_purchased(conn, order_id: int) -> Optional[int]:
    """
    APPROVED -> PURCHASED, booking one confirmed PURCHASE movement with every
    line that has something to buy. Returns the movement id (None when nothing
    was bought).
    """
    with transaction(conn):
        order = _transition(conn, order_id, OrderState.PURCHASED)

        bought = [l for l in order.lines if l.quantity_to_buy > 0]
        if not bought:
            return None

        movement_id = create_movement(
            conn,
            MovementType.PURCHASE,
            [MovementLine(ingredient_id=l.ingredient_id, quantity=l.quantity_to_buy, unit_cost=l.unit_cost) for l in bought],
            event_id=order.event_id,
            notes="Purchase from event order",
            confirm=True,
        )
    return movement_id


def is_dispatched(conn, event_id: int) -> bool:
    rows = q(
        conn,
        "SELECT 1 FROM inventory_movements WHERE event_id=? AND movement_type=? LIMIT 1",
        (int(event_id), MovementType.USE.value),
    )
    return bool(rows)


def dispatch_ingredients(conn, event_id: int) -> Optional[int]:
    """
    Take the event's ingredients out of stock: one confirmed USE movement with
    each purchased line's needed quantity. Allowed once per event, and only after
    the event's order is PURCHASED.
    """
    get_event(conn, event_id)
    with transaction(conn):
        if is_dispatched(conn, event_id):
            raise ValidationError("Ingredients were already dispatched for this event.")

        rows = q(
            conn,
            """
            SELECT id FROM purchase_orders
            WHERE event_id=? AND state='PURCHASED'
            ORDER BY created_at DESC, id DESC
            LIMIT 1
            """,
            (int(event_id),),
        )
        if not rows:
            raise ValidationError("There is no purchased order for this event.")

        order = get_order_by_id(conn, int(rows[0]["id"]))
        used = [l for l in order.lines if l.quantity_needed > 0]
        if not used:
            return None

        movement_id = create_movement(
            conn,
            MovementType.USE,
            [MovementLine(ingredient_id=l.ingredient_id, quantity=l.quantity_needed, unit_cost=l.unit_cost) for l in used],
            event_id=int(event_id),
            notes="Ingredient dispatch for event",
            confirm=True,
        )

    logger.info("Dispatched ingredients for event %s (movement %s)", event_id, movement_id)
    return movement_id

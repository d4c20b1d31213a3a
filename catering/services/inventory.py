"""
Inventory movements: the only code path that writes ``ingredients.current_stock``.

A movement is created as DRAFT (no stock effect) and applies its lines exactly
once, when it flips to CONFIRMED. Confirmed movements are immutable.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from catering.db import q, q_one, rowcount, transaction, x
from catering.errors import ValidationError
from catering.models import InventoryMovement, MovementLine, MovementState, MovementType, parse_enum
from catering.utils import iso_now, iso_today

logger = logging.getLogger(__name__)


def new_stock_level(movement_type, current: float, quantity: float) -> float:
    mt = parse_enum(MovementType, movement_type)
    current = float(current or 0)
    quantity = float(quantity)

    if mt is MovementType.PURCHASE:
        return current + quantity
    if mt in (MovementType.USE, MovementType.RETURN):
        return max(0.0, current - quantity)
    # ADJUSTMENT sets the counted level
    return quantity


def _validate_lines(movement_type: MovementType, lines: list[MovementLine]) -> None:
    for line in lines:
        qty = float(line.quantity)
        if movement_type is MovementType.ADJUSTMENT:
            if qty < 0:
                raise ValidationError("Adjusted stock level must be >= 0.")
        elif qty <= 0:
            raise ValidationError("Movement quantities must be > 0.")
        if float(line.unit_cost or 0) < 0:
            raise ValidationError("Unit cost must be >= 0.")


def _insert_movement(
    conn,
    movement_type: MovementType,
    lines: list[MovementLine],
    *,
    event_id: Optional[int],
    supplier: Optional[str],
    notes: Optional[str],
    movement_date: Optional[str],
) -> int:
    movement_id = x(
        conn,
        """
        INSERT INTO inventory_movements (
            movement_type, state, movement_date, event_id, supplier, notes, created_at
        ) VALUES (?, 'DRAFT', ?, ?, ?, ?, ?)
        """,
        (
            movement_type.value,
            movement_date or iso_today(),
            int(event_id) if event_id is not None else None,
            (supplier or "").strip() or None,
            (notes or "").strip() or None,
            iso_now(),
        ),
    )
    for line in lines:
        x(
            conn,
            """
            INSERT INTO inventory_movement_lines (movement_id, ingredient_id, quantity, unit_cost)
            VALUES (?, ?, ?, ?)
            """,
            (int(movement_id), int(line.ingredient_id), float(line.quantity), float(line.unit_cost or 0)),
        )
    return int(movement_id)


def _apply_movement(conn, movement_id: int) -> InventoryMovement:
    """
    Flip DRAFT -> CONFIRMED and write the resulting stock levels.
    Must run inside transaction(); the conditional state update guarantees a
    movement is applied at most once.
    """
    flipped = rowcount(
        conn,
        "UPDATE inventory_movements SET state='CONFIRMED', confirmed_at=? WHERE id=? AND state='DRAFT'",
        (iso_now(), int(movement_id)),
    )
    if flipped != 1:
        raise ValidationError("Movement is already confirmed.")

    movement = get_movement(conn, movement_id)
    for line in movement.lines:
        ing = q_one(conn, "SELECT current_stock FROM ingredients WHERE id=?", (line.ingredient_id,), what="Ingredient")
        current = float(ing["current_stock"] or 0)
        new_stock = new_stock_level(movement.movement_type, current, line.quantity)
        x(conn, "UPDATE ingredients SET current_stock=? WHERE id=?", (float(new_stock), line.ingredient_id))
        logger.info(
            "Stock %s ingredient=%s %.4f -> %.4f (movement %s)",
            movement.movement_type.value,
            line.ingredient_id,
            current,
            new_stock,
            movement.id,
        )
    return movement


# -------------------------
# Public API
# -------------------------

def create_movement(
    conn,
    movement_type,
    lines: Iterable[MovementLine],
    *,
    event_id: Optional[int] = None,
    supplier: Optional[str] = None,
    notes: Optional[str] = None,
    movement_date: Optional[str] = None,
    confirm: bool = False,
) -> int:
    """
    Record a movement. Drafts have no stock effect; ``confirm=True`` creates and
    confirms in one transaction.
    """
    mt = parse_enum(MovementType, movement_type)
    lines = list(lines)
    if not lines:
        raise ValidationError("At least one movement line is required.")
    _validate_lines(mt, lines)

    with transaction(conn):
        movement_id = _insert_movement(
            conn, mt, lines, event_id=event_id, supplier=supplier, notes=notes, movement_date=movement_date
        )
        if confirm:
            _apply_movement(conn, movement_id)
    return movement_id


def lines_from_grid(movement_type, rows) -> list[MovementLine]:
    """
    Movement lines from an entry grid of (ingredient_id, quantity, unit_cost,
    stock_shown) rows. An ADJUSTMENT keeps every row whose count differs from
    the stock shown, a count of 0 included; other types keep positive quantities.
    """
    mt = parse_enum(MovementType, movement_type)
    out = []
    for ingredient_id, quantity, unit_cost, stock_shown in rows:
        quantity = float(quantity)
        if mt is MovementType.ADJUSTMENT:
            keep = quantity != float(stock_shown)
        else:
            keep = quantity > 0
        if keep:
            out.append(MovementLine(int(ingredient_id), quantity, float(unit_cost or 0)))
    return out


def confirm_movement(conn, movement_id: int) -> InventoryMovement:
    current = get_movement(conn, movement_id)
    if current.state is MovementState.CONFIRMED:
        raise ValidationError("Movement is already confirmed.")

    with transaction(conn):
        _apply_movement(conn, movement_id)
    return get_movement(conn, movement_id)


def delete_movement(conn, movement_id: int) -> None:
    """Only drafts can be deleted; stock is never touched."""
    movement = get_movement(conn, movement_id)
    if movement.state is not MovementState.DRAFT:
        raise ValidationError("Confirmed movements cannot be deleted.")
    n = rowcount(conn, "DELETE FROM inventory_movements WHERE id=? AND state='DRAFT'", (int(movement_id),))
    if n != 1:
        raise ValidationError("Confirmed movements cannot be deleted.")


def get_movement(conn, movement_id: int) -> InventoryMovement:
    r = q_one(conn, "SELECT * FROM inventory_movements WHERE id=?", (int(movement_id),), what="Movement")
    lines = q(conn, "SELECT * FROM inventory_movement_lines WHERE movement_id=? ORDER BY id", (int(movement_id),))
    return InventoryMovement.from_row(r, [MovementLine.from_row(l) for l in lines])


def list_movements(conn, *, event_id: Optional[int] = None, movement_type=None) -> list[InventoryMovement]:
    sql = "SELECT id FROM inventory_movements WHERE 1=1"
    params: list = []
    if event_id is not None:
        sql += " AND event_id=?"
        params.append(int(event_id))
    if movement_type is not None:
        sql += " AND movement_type=?"
        params.append(parse_enum(MovementType, movement_type).value)
    sql += " ORDER BY movement_date DESC, id DESC"
    return [get_movement(conn, int(r["id"])) for r in q(conn, sql, params)]


def list_stock(conn):
    return q(
        conn,
        """
        SELECT id, name, base_unit, ROUND(cost_per_unit, 4) AS cost_per_unit,
               ROUND(current_stock, 3) AS current_stock,
               ROUND(current_stock * cost_per_unit, 2) AS stock_value
        FROM ingredients
        ORDER BY name
        """,
    )


def stock_value(conn) -> float:
    r = q(conn, "SELECT COALESCE(SUM(current_stock * cost_per_unit), 0) AS v FROM ingredients")
    return float(r[0]["v"])

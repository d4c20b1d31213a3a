"""Cached, read-only DataFrames for the Streamlit pages."""
from __future__ import annotations

from pathlib import Path

import pandas as pd

from catering.cache import cached_read
from catering.db import get_conn, q
from catering.services.equipment import available_equipment, reservation_calendar
from catering.services.inventory import list_stock
from catering.services.purchase_orders import list_orders
from catering.services.transport import list_transport_orders


def _frame(rows) -> pd.DataFrame:
    return pd.DataFrame([dict(r) for r in rows])


@cached_read("ingredients")
def stock_frame(db_path: Path) -> pd.DataFrame:
    return _frame(list_stock(get_conn(db_path)))


@cached_read("inventory_movements", "inventory_movement_lines", "ingredients")
def movements_frame(db_path: Path, limit: int = 50) -> pd.DataFrame:
    rows = q(
        get_conn(db_path),
        """
        SELECT m.id, m.movement_date, m.movement_type, m.state, e.name AS event,
               i.name AS ingredient, ml.quantity, i.base_unit, ml.unit_cost, m.notes
        FROM inventory_movements m
        JOIN inventory_movement_lines ml ON ml.movement_id = m.id
        JOIN ingredients i ON i.id = ml.ingredient_id
        LEFT JOIN events e ON e.id = m.event_id
        ORDER BY m.id DESC, ml.id
        LIMIT ?
        """,
        (int(limit),),
    )
    return _frame(rows)


@cached_read("purchase_orders", "events")
def orders_frame(db_path: Path) -> pd.DataFrame:
    return _frame(list_orders(get_conn(db_path)))


@cached_read("staff_assignments", "staff", "events")
def staff_cost_frame(db_path: Path) -> pd.DataFrame:
    rows = q(
        get_conn(db_path),
        """
        SELECT e.name AS event, e.event_date, e.settlement_status,
               COUNT(sa.id) AS staff, ROUND(COALESCE(SUM(sa.amount_owed), 0), 2) AS amount_owed
        FROM events e
        LEFT JOIN staff_assignments sa ON sa.event_id = e.id
        GROUP BY e.id
        ORDER BY e.event_date DESC
        """,
    )
    return _frame(rows)


@cached_read("events", "quotations", "event_planned_dishes")
def events_frame(db_path: Path) -> pd.DataFrame:
    rows = q(
        get_conn(db_path),
        """
        SELECT e.id, e.event_date, e.name, e.location, qt.name AS quotation,
               COALESCE(qt.number_of_guests, 1) AS guests, e.required_staff,
               COUNT(pd.id) AS dishes, e.settlement_status
        FROM events e
        LEFT JOIN quotations qt ON qt.id = e.quotation_id
        LEFT JOIN event_planned_dishes pd ON pd.event_id = e.id
        GROUP BY e.id
        ORDER BY e.event_date DESC, e.id DESC
        """,
    )
    return _frame(rows)


@cached_read("equipment", "equipment_reservations")
def availability_frame(db_path: Path, start_date: str, end_date: str) -> pd.DataFrame:
    rows = available_equipment(get_conn(db_path), start_date, end_date)
    return pd.DataFrame([vars(a) for a in rows])


@cached_read("equipment_reservations", "events")
def calendar_frame(db_path: Path, start_date: str, end_date: str) -> pd.DataFrame:
    return _frame(reservation_calendar(get_conn(db_path), start_date, end_date))


@cached_read("equipment_movements", "equipment")
def equipment_movements_frame(db_path: Path, limit: int = 50) -> pd.DataFrame:
    rows = q(
        get_conn(db_path),
        """
        SELECT m.id, m.movement_date, m.movement_type, m.state, e.name AS event,
               eq.name AS equipment, ml.quantity, ml.loss, m.notes
        FROM equipment_movements m
        JOIN equipment_movement_lines ml ON ml.movement_id = m.id
        JOIN equipment eq ON eq.id = ml.equipment_id
        LEFT JOIN events e ON e.id = m.event_id
        ORDER BY m.id DESC, ml.id
        LIMIT ?
        """,
        (int(limit),),
    )
    return _frame(rows)


@cached_read("transport_orders", "events")
def transport_frame(db_path: Path) -> pd.DataFrame:
    return _frame(list_transport_orders(get_conn(db_path)))

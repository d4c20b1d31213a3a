from __future__ import annotations

import math
import random
from datetime import date, timedelta

from catering.db import ensure_schema, q, transaction, x
from catering.models import BillingModality, MovementLine, MovementType, RecipeLine
from catering.services.equipment import (
    available_equipment,
    create_equipment,
    get_or_create_reservation,
    save_reservation_items,
    set_reservation_state,
)
from catering.services.events import create_event, create_quotation, set_planned_dishes
from catering.services.ingredients import add_supplier, create_ingredient, create_recipe, set_primary_supplier, set_recipe_lines
from catering.services.inventory import create_movement
from catering.services.pay import assign_staff, create_staff
from catering.services.transport import get_or_create_transport_order, save_transport_order, set_transport_state

# name, base unit, cost per base unit
DEFAULT_INGREDIENTS = [
    ("Beef tenderloin", "gr", 52.0),
    ("Chicken breast", "gr", 21.0),
    ("Rice", "gr", 4.2),
    ("Potato", "gr", 3.1),
    ("Heavy cream", "ml", 16.0),
    ("Butter", "gr", 38.0),
    ("Lime", "und", 450.0),
    ("Fresh herbs", "gr", 60.0),
]

# recipe, servings per batch, price, [(ingredient, qty per batch)]
DEFAULT_RECIPES = [
    ("Beef medallions", 10, 62000.0, [("Beef tenderloin", 1800), ("Butter", 120), ("Fresh herbs", 30)]),
    ("Creamy chicken", 8, 38000.0, [("Chicken breast", 1600), ("Heavy cream", 400), ("Fresh herbs", 20)]),
    ("Herb rice", 12, 9000.0, [("Rice", 1200), ("Butter", 60), ("Fresh herbs", 25)]),
    ("Mashed potato", 10, 8500.0, [("Potato", 2000), ("Butter", 150), ("Heavy cream", 250)]),
]

# equipment, category, stock, rental price
DEFAULT_EQUIPMENT = [
    ("Folding chair", "Furniture", 200, 3500.0),
    ("Round table", "Furniture", 25, 18000.0),
    ("White tablecloth", "Linen", 40, 9000.0),
    ("Wine glass", "Glassware", 300, 1200.0),
    ("Dinner plate", "Tableware", 300, 1000.0),
    ("Chafing dish", "Service", 12, 25000.0),
]

DEFAULT_STAFF = [
    ("Ana Maria Rojas", "52345678", "Coordinator", BillingModality.PER_EVENT, 180000.0, 0.0),
    ("Carlos Andres Gil", "80123456", "Waiter", BillingModality.SHIFT_UP_TO_10H_THEN_OVERTIME, 100000.0, 15000.0),
    ("Luisa Fernanda Paz", "1012345678", "Waiter", BillingModality.PER_HOUR, 23000.0, 0.0),
    ("Jorge Ivan Mejia", "79876543", "Chef", BillingModality.FIXED_SHIFT_10H, 160000.0, 0.0),
]


def upsert_reference_data(conn) -> None:
    """Ingredients and recipes the app expects to find. Safe to run repeatedly."""
    ensure_schema(conn)

    if not q(conn, "SELECT 1 FROM ingredients LIMIT 1"):
        for name, unit, cost in DEFAULT_INGREDIENTS:
            create_ingredient(conn, name=name, base_unit=unit, cost_per_unit=cost)

    if not q(conn, "SELECT 1 FROM equipment LIMIT 1"):
        for name, category, stock, price in DEFAULT_EQUIPMENT:
            create_equipment(conn, name=name, category=category, stock_total=stock, rental_price=price)

    if not q(conn, "SELECT 1 FROM recipes LIMIT 1"):
        ids = {str(r["name"]): int(r["id"]) for r in q(conn, "SELECT id, name FROM ingredients")}
        for name, servings, price, lines in DEFAULT_RECIPES:
            recipe_id = create_recipe(conn, name=name, servings_per_batch=servings, price=price, category="Main")
            set_recipe_lines(conn, recipe_id, [RecipeLine(ids[ing], float(qty)) for ing, qty in lines])


def wipe_all(conn) -> None:
    # Keep schema, delete data (order matters for FKs).
    with transaction(conn):
        for t in [
            "equipment_movement_lines",
            "equipment_movements",
            "equipment_reservation_items",
            "equipment_reservations",
            "transport_orders",
            "staff_assignments",
            "staff",
            "inventory_movement_lines",
            "inventory_movements",
            "purchase_order_lines",
            "purchase_orders",
            "event_planned_dishes",
            "events",
            "quotations",
            "recipe_ingredient_lines",
            "recipes",
            "ingredient_suppliers",
            "ingredients",
            "equipment",
        ]:
            x(conn, f"DELETE FROM {t};")


def load_demo_data(conn, *, seed: int = 7) -> None:
    random.seed(seed)
    upsert_reference_data(conn)

    ingredients = q(conn, "SELECT * FROM ingredients ORDER BY id")
    recipes = q(conn, "SELECT * FROM recipes ORDER BY id")

    # Suppliers, the first one primary
    for ing in ingredients:
        unit = str(ing["base_unit"])
        package_unit = {"gr": "kg", "ml": "lt"}.get(unit, "und")
        package_qty = 1.0 if package_unit != "und" else 12.0
        factor = 1000.0 if package_unit != "und" else 1.0
        sup_ids = []
        for supplier in ("Central de Abastos", "Mayorista Norte"):
            price = float(ing["cost_per_unit"]) * package_qty * factor * random.uniform(0.9, 1.15)
            sup_ids.append(
                add_supplier(
                    conn,
                    int(ing["id"]),
                    supplier=supplier,
                    package_quantity=package_qty,
                    package_unit=package_unit,
                    package_price=round(price, 0),
                )
            )
        set_primary_supplier(conn, int(ing["id"]), sup_ids[0])

    # Opening stock count
    create_movement(
        conn,
        MovementType.ADJUSTMENT,
        [MovementLine(int(i["id"]), float(random.randint(0, 3) * 500)) for i in ingredients],
        notes="Opening stock count",
        confirm=True,
    )

    for name, id_number, role, modality, rate, ot in DEFAULT_STAFF:
        if not q(conn, "SELECT 1 FROM staff WHERE id_number=?", (id_number,)):
            create_staff(
                conn,
                full_name=name,
                id_number=id_number,
                role=role,
                modality=modality,
                base_rate=rate,
                overtime_rate=ot,
            )
    staff = q(conn, "SELECT * FROM staff ORDER BY id")

    # Two upcoming events, each from a quotation
    base_date = date.today() + timedelta(days=5)
    for i, guests in enumerate((80, 140)):
        event_date = (base_date + timedelta(days=7 * i)).isoformat()
        quotation_id = create_quotation(
            conn,
            name=f"Demo quotation {i + 1}",
            client_name="Demo client",
            number_of_guests=guests,
            event_date=event_date,
        )
        event_id = create_event(
            conn,
            name=f"Demo event {i + 1}",
            event_date=event_date,
            location="Bogota",
            quotation_id=quotation_id,
            required_staff=len(staff),
        )
        picks = random.sample(list(recipes), k=2)
        set_planned_dishes(conn, event_id, {int(r["id"]): 1.0 for r in picks})

        for s in staff:
            hours = random.choice([8, 10, 12]) if s["billing_modality"] in ("PER_HOUR", "SHIFT_UP_TO_10H_THEN_OVERTIME") else None
            assign_staff(conn, event_id, int(s["id"]), hours_worked=hours)

        # Place settings per guest, capped by what is still free that day
        reservation = get_or_create_reservation(conn, event_id)
        free = {a.name: a for a in available_equipment(conn, reservation.start_date, reservation.end_date)}
        wanted = {
            "Folding chair": guests,
            "Round table": math.ceil(guests / 10),
            "White tablecloth": math.ceil(guests / 10),
            "Wine glass": guests,
            "Dinner plate": guests,
        }
        save_reservation_items(
            conn,
            reservation.id,
            {free[n].equipment_id: min(qty, free[n].available) for n, qty in wanted.items() if n in free},
        )
        if i == 0:
            set_reservation_state(conn, reservation.id, "CONFIRMED")
            transport = get_or_create_transport_order(conn, event_id)
            save_transport_order(
                conn,
                transport.id,
                pickup_name="Main kitchen",
                pickup_address="Cra 7 # 45-10",
                cargo_description="Equipment and cold boxes",
                pickup_time="14:00",
                unload_time="15:30",
                vehicle="Van",
            )
            set_transport_state(conn, transport.id, "SCHEDULED")

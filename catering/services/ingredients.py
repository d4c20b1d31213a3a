from __future__ import annotations

import logging
from typing import Iterable, Optional

from catering.db import q, q_one, rowcount, transaction, x
from catering.errors import NotFoundError, ValidationError
from catering.models import BaseUnit, Ingredient, IngredientSupplier, Recipe, RecipeLine, parse_enum
from catering.utils import iso_now, safe_div

logger = logging.getLogger(__name__)

# (package unit, base unit) -> factor
_UNIT_FACTORS = {
    ("kg", "gr"): 1000.0,
    ("lt", "ml"): 1000.0,
}


def convert_to_base_unit(quantity: float, package_unit: str, base_unit: str) -> float:
    """Package quantity expressed in the ingredient's base unit (kg->gr, lt->ml, else as-is)."""
    key = (str(package_unit).strip().lower(), str(base_unit).strip().lower())
    return float(quantity) * _UNIT_FACTORS.get(key, 1.0)


def cost_per_base_unit(package_price: float, package_quantity: float, package_unit: str, base_unit: str) -> float:
    return safe_div(float(package_price), convert_to_base_unit(package_quantity, package_unit, base_unit))


# -------------------------
# Ingredients
# -------------------------

def create_ingredient(conn, *, name: str, base_unit, cost_per_unit: float = 0.0) -> int:
    """New ingredients start with zero stock; stock only moves through inventory movements."""
    if not str(name).strip():
        raise ValidationError("Ingredient name is required.")
    unit = parse_enum(BaseUnit, base_unit)
    if float(cost_per_unit) < 0:
        raise ValidationError("Cost per unit must be >= 0.")

    return x(
        conn,
        "INSERT INTO ingredients (name, base_unit, cost_per_unit, current_stock) VALUES (?, ?, ?, 0)",
        (str(name).strip(), unit.value, float(cost_per_unit)),
    )


def update_ingredient(conn, ingredient_id: int, *, name: Optional[str] = None, cost_per_unit: Optional[float] = None) -> None:
    get_ingredient(conn, ingredient_id)
    if name is not None:
        x(conn, "UPDATE ingredients SET name=? WHERE id=?", (str(name).strip(), int(ingredient_id)))
    if cost_per_unit is not None:
        if float(cost_per_unit) < 0:
            raise ValidationError("Cost per unit must be >= 0.")
        x(conn, "UPDATE ingredients SET cost_per_unit=? WHERE id=?", (float(cost_per_unit), int(ingredient_id)))


def get_ingredient(conn, ingredient_id: int) -> Ingredient:
    r = q_one(conn, "SELECT * FROM ingredients WHERE id=?", (int(ingredient_id),), what="Ingredient")
    return Ingredient.from_row(r)


def list_ingredients(conn) -> list[Ingredient]:
    return [Ingredient.from_row(r) for r in q(conn, "SELECT * FROM ingredients ORDER BY name")]


# -------------------------
# Suppliers
# -------------------------

def add_supplier(
    conn,
    ingredient_id: int,
    *,
    supplier: str,
    package_quantity: float,
    package_unit: str,
    package_price: float,
) -> int:
    ing = get_ingredient(conn, ingredient_id)
    if float(package_quantity) <= 0:
        raise ValidationError("Package quantity must be > 0.")
    if float(package_price) < 0:
        raise ValidationError("Package price must be >= 0.")

    cpu = cost_per_base_unit(package_price, package_quantity, package_unit, ing.base_unit.value)
    return x(
        conn,
        """
        INSERT INTO ingredient_suppliers (
            ingredient_id, supplier, package_quantity, package_unit, package_price,
            cost_per_base_unit, is_primary, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, 0, ?)
        """,
        (
            ing.id,
            str(supplier).strip(),
            float(package_quantity),
            str(package_unit).strip().lower(),
            float(package_price),
            float(cpu),
            iso_now(),
        ),
    )


def update_supplier(
    conn,
    supplier_id: int,
    *,
    package_quantity: Optional[float] = None,
    package_unit: Optional[str] = None,
    package_price: Optional[float] = None,
) -> IngredientSupplier:
    cur = get_supplier(conn, supplier_id)
    ing = get_ingredient(conn, cur.ingredient_id)

    pq = float(package_quantity) if package_quantity is not None else cur.package_quantity
    pu = str(package_unit).strip().lower() if package_unit is not None else cur.package_unit
    pp = float(package_price) if package_price is not None else cur.package_price
    if pq <= 0:
        raise ValidationError("Package quantity must be > 0.")

    cpu = cost_per_base_unit(pp, pq, pu, ing.base_unit.value)
    with transaction(conn):
        x(
            conn,
            """
            UPDATE ingredient_suppliers
            SET package_quantity=?, package_unit=?, package_price=?, cost_per_base_unit=?
            WHERE id=?
            """,
            (pq, pu, pp, cpu, int(supplier_id)),
        )
        if cur.is_primary:
            x(conn, "UPDATE ingredients SET cost_per_unit=? WHERE id=?", (cpu, ing.id))
    return get_supplier(conn, supplier_id)


def get_supplier(conn, supplier_id: int) -> IngredientSupplier:
    r = q_one(conn, "SELECT * FROM ingredient_suppliers WHERE id=?", (int(supplier_id),), what="Supplier")
    return IngredientSupplier.from_row(r)


def list_suppliers(conn, ingredient_id: int) -> list[IngredientSupplier]:
    rows = q(
        conn,
        "SELECT * FROM ingredient_suppliers WHERE ingredient_id=? ORDER BY created_at, id",
        (int(ingredient_id),),
    )
    return [IngredientSupplier.from_row(r) for r in rows]


def delete_supplier(conn, supplier_id: int) -> None:
    get_supplier(conn, supplier_id)
    x(conn, "DELETE FROM ingredient_suppliers WHERE id=?", (int(supplier_id),))


def set_primary_supplier(conn, ingredient_id: int, supplier_id: int) -> float:
    """Flag one supplier as primary and adopt its base-unit cost as the ingredient cost."""
    sup = get_supplier(conn, supplier_id)
    if sup.ingredient_id != int(ingredient_id):
        raise ValidationError("Supplier does not belong to this ingredient.")

    with transaction(conn):
        x(conn, "UPDATE ingredient_suppliers SET is_primary=0 WHERE ingredient_id=?", (int(ingredient_id),))
        x(conn, "UPDATE ingredient_suppliers SET is_primary=1 WHERE id=?", (int(supplier_id),))
        x(conn, "UPDATE ingredients SET cost_per_unit=? WHERE id=?", (sup.cost_per_base_unit, int(ingredient_id)))

    logger.info("Ingredient %s now buys from supplier %s at %.4f/unit", ingredient_id, supplier_id, sup.cost_per_base_unit)
    return sup.cost_per_base_unit


# -------------------------
# Recipes
# -------------------------

def create_recipe(conn, *, name: str, servings_per_batch: float = 1, price: float = 0.0, category: Optional[str] = None) -> int:
    if not str(name).strip():
        raise ValidationError("Recipe name is required.")
    if float(servings_per_batch) <= 0:
        raise ValidationError("Servings per batch must be > 0.")
    return x(
        conn,
        "INSERT INTO recipes (name, category, price, servings_per_batch) VALUES (?, ?, ?, ?)",
        (str(name).strip(), category, float(price), float(servings_per_batch)),
    )


def set_recipe_lines(conn, recipe_id: int, lines: Iterable[RecipeLine]) -> int:
    """Replace every ingredient line of a recipe. Returns the number of lines stored."""
    q_one(conn, "SELECT id FROM recipes WHERE id=?", (int(recipe_id),), what="Recipe")
    lines = list(lines)
    for line in lines:
        if float(line.quantity_per_batch) <= 0:
            raise ValidationError("Recipe line quantity must be > 0.")

    with transaction(conn):
        x(conn, "DELETE FROM recipe_ingredient_lines WHERE recipe_id=?", (int(recipe_id),))
        for line in lines:
            x(
                conn,
                "INSERT INTO recipe_ingredient_lines (recipe_id, ingredient_id, quantity_per_batch) VALUES (?, ?, ?)",
                (int(recipe_id), int(line.ingredient_id), float(line.quantity_per_batch)),
            )
    return len(lines)


def get_recipe(conn, recipe_id: int) -> Recipe:
    r = q_one(conn, "SELECT * FROM recipes WHERE id=?", (int(recipe_id),), what="Recipe")
    lines = q(
        conn,
        "SELECT ingredient_id, quantity_per_batch FROM recipe_ingredient_lines WHERE recipe_id=? ORDER BY id",
        (int(recipe_id),),
    )
    return Recipe.from_row(
        r,
        [RecipeLine(ingredient_id=int(l["ingredient_id"]), quantity_per_batch=float(l["quantity_per_batch"])) for l in lines],
    )


def list_recipes(conn) -> list[Recipe]:
    return [get_recipe(conn, int(r["id"])) for r in q(conn, "SELECT id FROM recipes ORDER BY name")]


def recipe_unit_cost(conn, recipe_id: int) -> float:
    """Ingredient cost of one serving."""
    recipe = get_recipe(conn, recipe_id)
    r = q(
        conn,
        """
        SELECT COALESCE(SUM(ril.quantity_per_batch * i.cost_per_unit), 0) AS batch_cost
        FROM recipe_ingredient_lines ril
        JOIN ingredients i ON i.id = ril.ingredient_id
        WHERE ril.recipe_id=?
        """,
        (recipe.id,),
    )
    return safe_div(float(r[0]["batch_cost"]), recipe.servings_per_batch)


def delete_recipe(conn, recipe_id: int) -> None:
    if rowcount(conn, "DELETE FROM recipes WHERE id=?", (int(recipe_id),)) != 1:
        raise NotFoundError("Recipe not found.")

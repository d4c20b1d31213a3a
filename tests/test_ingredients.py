import pytest

from catering.errors import ConstraintViolation, NotFoundError, ValidationError
from catering.services.ingredients import (
    add_supplier,
    convert_to_base_unit,
    cost_per_base_unit,
    create_ingredient,
    delete_recipe,
    get_ingredient,
    get_recipe,
    list_suppliers,
    recipe_unit_cost,
    set_primary_supplier,
    update_supplier,
)
from .factories import make_ingredient, make_recipe


@pytest.mark.parametrize(
    "qty, package_unit, base_unit, expected",
    [
        (2, "kg", "gr", 2000),
        (1.5, "lt", "ml", 1500),
        (500, "gr", "gr", 500),
        (12, "und", "und", 12),
        (1, "KG", "gr", 1000),
        (1, "kg", "ml", 1),
    ],
)
def test_convert_to_base_unit(qty, package_unit, base_unit, expected):
    assert convert_to_base_unit(qty, package_unit, base_unit) == expected


def test_cost_per_base_unit():
    assert cost_per_base_unit(50000, 1, "kg", "gr") == 50
    assert cost_per_base_unit(9000, 0, "kg", "gr") == 0


def test_new_ingredient_starts_without_stock(conn):
    ing = get_ingredient(conn, create_ingredient(conn, name="Salt", base_unit="gr", cost_per_unit=1.2))

    assert ing.current_stock == 0
    assert ing.base_unit.value == "gr"


def test_ingredient_validation(conn):
    with pytest.raises(ValidationError):
        create_ingredient(conn, name="Salt", base_unit="lb")
    with pytest.raises(ValidationError):
        create_ingredient(conn, name="  ", base_unit="gr")
    create_ingredient(conn, name="Salt", base_unit="gr")
    with pytest.raises(ConstraintViolation):
        create_ingredient(conn, name="Salt", base_unit="gr")


def test_primary_supplier_sets_ingredient_cost(conn):
    ing = make_ingredient(conn, cost_per_unit=0)
    cheap = add_supplier(conn, ing, supplier="Central", package_quantity=2, package_unit="kg", package_price=8000)
    dear = add_supplier(conn, ing, supplier="Norte", package_quantity=500, package_unit="gr", package_price=2500)

    assert set_primary_supplier(conn, ing, cheap) == 4
    assert get_ingredient(conn, ing).cost_per_unit == 4

    set_primary_supplier(conn, ing, dear)
    assert get_ingredient(conn, ing).cost_per_unit == 5
    assert [s.is_primary for s in list_suppliers(conn, ing)] == [False, True]


def test_primary_supplier_must_belong_to_ingredient(conn):
    a = make_ingredient(conn)
    b = make_ingredient(conn)
    sup = add_supplier(conn, a, supplier="Central", package_quantity=1, package_unit="kg", package_price=1000)

    with pytest.raises(ValidationError):
        set_primary_supplier(conn, b, sup)


def test_updating_primary_supplier_updates_cost(conn):
    ing = make_ingredient(conn)
    sup = add_supplier(conn, ing, supplier="Central", package_quantity=1, package_unit="kg", package_price=1000)
    set_primary_supplier(conn, ing, sup)

    update_supplier(conn, sup, package_price=3000)

    assert get_ingredient(conn, ing).cost_per_unit == 3


def test_recipe_unit_cost(conn):
    rice = make_ingredient(conn, cost_per_unit=4.0)
    butter = make_ingredient(conn, cost_per_unit=38.0)
    recipe_id = make_recipe(conn, [(rice, 1200), (butter, 60)], servings_per_batch=12)

    assert len(get_recipe(conn, recipe_id).lines) == 2
    assert recipe_unit_cost(conn, recipe_id) == pytest.approx(590)


def test_delete_recipe(conn):
    recipe_id = make_recipe(conn, [])
    delete_recipe(conn, recipe_id)

    with pytest.raises(NotFoundError):
        delete_recipe(conn, recipe_id)

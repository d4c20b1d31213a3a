import pytest

from catering.errors import ValidationError
from catering.models import MovementLine, MovementState, MovementType
from catering.services.ingredients import get_ingredient
from catering.services.inventory import (
    confirm_movement,
    create_movement,
    delete_movement,
    get_movement,
    lines_from_grid,
    list_movements,
    new_stock_level,
    stock_value,
)
from .factories import make_event, make_ingredient


@pytest.mark.parametrize(
    "movement_type, current, qty, expected",
    [
        (MovementType.PURCHASE, 100, 50, 150),
        (MovementType.USE, 100, 30, 70),
        (MovementType.USE, 100, 500, 0),
        (MovementType.RETURN, 10, 25, 0),
        (MovementType.ADJUSTMENT, 100, 42, 42),
        ("ADJUSTMENT", 100, 0, 0),
    ],
)
def test_new_stock_level(movement_type, current, qty, expected):
    assert new_stock_level(movement_type, current, qty) == expected


def test_unknown_movement_type_is_rejected():
    with pytest.raises(ValidationError):
        new_stock_level("SPOILAGE", 10, 1)


def test_draft_has_no_stock_effect(conn):
    ing = make_ingredient(conn)

    movement_id = create_movement(conn, MovementType.PURCHASE, [MovementLine(ing, 500, 4.0)])

    assert get_movement(conn, movement_id).state is MovementState.DRAFT
    assert get_ingredient(conn, ing).current_stock == 0


def test_confirm_applies_exactly_once(conn):
    ing = make_ingredient(conn)
    movement_id = create_movement(conn, MovementType.PURCHASE, [MovementLine(ing, 500, 4.0)])

    movement = confirm_movement(conn, movement_id)

    assert movement.state is MovementState.CONFIRMED
    assert get_ingredient(conn, ing).current_stock == 500
    with pytest.raises(ValidationError):
        confirm_movement(conn, movement_id)
    assert get_ingredient(conn, ing).current_stock == 500


def test_adjustment_sets_absolute_level(conn):
    ing = make_ingredient(conn, stock=800)

    create_movement(conn, "ADJUSTMENT", [MovementLine(ing, 120)], confirm=True)

    assert get_ingredient(conn, ing).current_stock == 120


def test_use_clamps_at_zero(conn):
    ing = make_ingredient(conn, stock=100)

    create_movement(conn, MovementType.USE, [MovementLine(ing, 250)], confirm=True)

    assert get_ingredient(conn, ing).current_stock == 0


def test_multi_line_movement_touches_each_ingredient(conn):
    a = make_ingredient(conn, stock=10)
    b = make_ingredient(conn, stock=20)

    create_movement(conn, MovementType.PURCHASE, [MovementLine(a, 5), MovementLine(b, 7)], confirm=True)

    assert get_ingredient(conn, a).current_stock == 15
    assert get_ingredient(conn, b).current_stock == 27


def test_invalid_lines_are_rejected(conn):
    ing = make_ingredient(conn)

    with pytest.raises(ValidationError):
        create_movement(conn, MovementType.PURCHASE, [])
    with pytest.raises(ValidationError):
        create_movement(conn, MovementType.USE, [MovementLine(ing, 0)])
    with pytest.raises(ValidationError):
        create_movement(conn, MovementType.ADJUSTMENT, [MovementLine(ing, -1)])
    with pytest.raises(ValidationError):
        create_movement(conn, MovementType.PURCHASE, [MovementLine(ing, 1, unit_cost=-2)])
    assert list_movements(conn) == []


def test_failed_confirm_rolls_back_every_line(conn):
    a = make_ingredient(conn, stock=10)
    # second line points at a missing ingredient
    conn.execute("PRAGMA foreign_keys = OFF;")
    movement_id = create_movement(conn, MovementType.PURCHASE, [MovementLine(a, 5), MovementLine(9999, 1)])
    conn.execute("PRAGMA foreign_keys = ON;")

    with pytest.raises(Exception):
        confirm_movement(conn, movement_id)

    assert get_ingredient(conn, a).current_stock == 10
    assert get_movement(conn, movement_id).state is MovementState.DRAFT


def test_only_drafts_can_be_deleted(conn):
    ing = make_ingredient(conn)
    draft = create_movement(conn, MovementType.PURCHASE, [MovementLine(ing, 5)])
    confirmed = create_movement(conn, MovementType.PURCHASE, [MovementLine(ing, 5)], confirm=True)

    delete_movement(conn, draft)
    with pytest.raises(ValidationError):
        delete_movement(conn, confirmed)

    assert [m.id for m in list_movements(conn)] == [confirmed]
    assert get_ingredient(conn, ing).current_stock == 5


def test_list_movements_filters(conn):
    ing = make_ingredient(conn, stock=50)
    event_id = make_event(conn)
    create_movement(conn, MovementType.USE, [MovementLine(ing, 5)], event_id=event_id, confirm=True)

    assert len(list_movements(conn, event_id=event_id)) == 1
    assert len(list_movements(conn, movement_type="ADJUSTMENT")) == 1
    assert list_movements(conn, event_id=event_id, movement_type=MovementType.PURCHASE) == []


def test_stock_value(conn):
    make_ingredient(conn, cost_per_unit=2.0, stock=100)
    make_ingredient(conn, cost_per_unit=0.5, stock=40)

    assert stock_value(conn) == 220


def test_stock_count_can_bring_an_ingredient_to_zero(conn):
    spoiled = make_ingredient(conn, stock=800)
    counted = make_ingredient(conn, stock=300)
    untouched = make_ingredient(conn, stock=50)
    grid = [(spoiled, 0.0, 4.0, 800.0), (counted, 280.0, 4.0, 300.0), (untouched, 50.0, 4.0, 50.0)]

    lines = lines_from_grid(MovementType.ADJUSTMENT, grid)
    create_movement(conn, MovementType.ADJUSTMENT, lines, confirm=True)

    assert [(l.ingredient_id, l.quantity) for l in lines] == [(spoiled, 0.0), (counted, 280.0)]
    assert get_ingredient(conn, spoiled).current_stock == 0
    assert get_ingredient(conn, counted).current_stock == 280
    assert get_ingredient(conn, untouched).current_stock == 50


def test_grid_keeps_positive_quantities_for_other_types():
    grid = [(1, 0.0, 4.0, 800.0), (2, 25.0, 3.5, 0.0)]

    [line] = lines_from_grid("PURCHASE", grid)

    assert (line.ingredient_id, line.quantity, line.unit_cost) == (2, 25.0, 3.5)

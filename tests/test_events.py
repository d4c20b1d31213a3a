from datetime import date

import pytest

from catering.errors import NotFoundError, ValidationError
from catering.models import OrderState, ReservationState, SettlementStatus, TransportState
from catering.services.events import (
    ChecklistData,
    compute_checklist,
    create_event,
    create_quotation,
    get_event,
    list_planned_dishes,
    list_quotations,
    load_checklist,
    number_of_guests,
    set_planned_dishes,
)
from catering.services.equipment import (
    create_equipment,
    dispatch_equipment,
    get_or_create_reservation,
    return_equipment,
    save_reservation_items,
    set_reservation_state,
)
from catering.services.pay import assign_staff, settle_event
from catering.services.purchase_orders import approve_order, dispatch_ingredients, generate_order, mark_purchased
from catering.services.transport import get_or_create_transport_order, save_transport_order, set_transport_state
from .factories import make_event, make_ingredient, make_recipe, make_staff

TODAY = date(2030, 1, 10)


def _data(**kw):
    base = dict(
        assigned_staff=0,
        required_staff=0,
        order_state=None,
        ingredients_dispatched=False,
        event_date="2030-01-15",
        settlement_status=SettlementStatus.PENDING,
    )
    base.update(kw)
    return ChecklistData(**base)


def test_empty_checklist():
    result = compute_checklist(_data(), today=TODAY)

    assert result.total_count == 10
    assert result.completed_count == 0
    assert result.percent == 0


def test_staffing_against_required_headcount():
    def staffed(**kw):
        return compute_checklist(_data(**kw), today=TODAY).items[0].completed

    assert not staffed(assigned_staff=2, required_staff=3)
    assert staffed(assigned_staff=3, required_staff=3)
    assert staffed(assigned_staff=1, required_staff=0)


def test_cancelled_order_does_not_count():
    result = compute_checklist(_data(order_state=OrderState.CANCELLED), today=TODAY)
    assert not result.items[1].completed


def test_complete_checklist():
    result = compute_checklist(
        _data(
            assigned_staff=4,
            required_staff=4,
            order_state=OrderState.PURCHASED,
            ingredients_dispatched=True,
            event_date="2030-01-09",
            settlement_status=SettlementStatus.SETTLED,
            reservation_state=ReservationState.RETURNED,
            equipment_dispatched=True,
            transport_state=TransportState.FINISHED,
        ),
        today=TODAY,
    )

    assert all(i.completed for i in result.items)
    assert result.percent == 100


def test_event_is_held_only_after_its_date():
    keys = lambda d: {i.key: i.completed for i in compute_checklist(_data(event_date=d), today=TODAY).items}
    assert not keys("2030-01-10")["event_held"]
    assert keys("2030-01-09T20:00:00")["event_held"]


def test_percent_is_the_share_of_completed_items():
    assert compute_checklist(_data(assigned_staff=1), today=TODAY).percent == 10
    assert compute_checklist(_data(assigned_staff=1, ingredients_dispatched=True), today=TODAY).percent == 20


def test_guests_come_from_the_quotation(conn):
    quotation_id = create_quotation(conn, name="Wedding", number_of_guests=120)
    with_quote = create_event(conn, name="Wedding", quotation_id=quotation_id)
    without = create_event(conn, name="Walk-in")

    assert number_of_guests(conn, with_quote) == 120
    assert number_of_guests(conn, without) == 1


def test_event_validation(conn):
    with pytest.raises(ValidationError):
        create_quotation(conn, name="Empty", number_of_guests=0)
    with pytest.raises(ValidationError):
        create_event(conn, name=" ")
    with pytest.raises(NotFoundError):
        get_event(conn, 404)


def test_planned_dishes_are_replaced(conn):
    ing = make_ingredient(conn)
    a = make_recipe(conn, [(ing, 10)], name="A")
    b = make_recipe(conn, [(ing, 10)], name="B")
    event_id = make_event(conn, dishes={a: 2})

    set_planned_dishes(conn, event_id, {b: 1.5})

    assert [(r["name"], r["planned_quantity"]) for r in list_planned_dishes(conn, event_id)] == [("B", 1.5)]
    with pytest.raises(ValidationError):
        set_planned_dishes(conn, event_id, {a: 0})


def test_checklist_follows_the_event_lifecycle(conn):
    ing = make_ingredient(conn, stock=100)
    recipe = make_recipe(conn, [(ing, 100)])
    event_id = make_event(conn, guests=10, dishes={recipe: 1}, event_date="2030-01-09", required_staff=1)

    assert load_checklist(conn, event_id, today=TODAY).completed_count == 1

    assign_staff(conn, event_id, make_staff(conn), hours_worked=8)
    order = generate_order(conn, event_id)
    approve_order(conn, order.id)
    mark_purchased(conn, order.id)
    dispatch_ingredients(conn, event_id)

    chairs = create_equipment(conn, name="Chair", stock_total=20)
    reservation = get_or_create_reservation(conn, event_id)
    save_reservation_items(conn, reservation.id, {chairs: 10})
    set_reservation_state(conn, reservation.id, ReservationState.CONFIRMED)
    transport = get_or_create_transport_order(conn, event_id)
    save_transport_order(conn, transport.id, pickup_time="14:00", destination_address="Club house")
    set_transport_state(conn, transport.id, TransportState.SCHEDULED)
    dispatch_equipment(conn, event_id)

    keys = {i.key: i.completed for i in load_checklist(conn, event_id, today=TODAY).items}
    assert keys["equipment_confirmed"] and keys["transport_scheduled"] and keys["equipment_dispatched"]
    assert not keys["equipment_returned"]

    return_equipment(conn, event_id)
    set_transport_state(conn, transport.id, TransportState.FINISHED)
    settle_event(conn, event_id)

    result = load_checklist(conn, event_id, today=TODAY)
    assert result.completed_count == 10
    assert result.percent == 100


def test_checklist_order():
    keys = [i.key for i in compute_checklist(_data(), today=TODAY).items]
    assert keys == [
        "staff_assigned",
        "order_generated",
        "order_purchased",
        "equipment_confirmed",
        "ingredients_dispatched",
        "transport_scheduled",
        "equipment_dispatched",
        "event_held",
        "equipment_returned",
        "staff_settled",
    ]


def test_cancelled_reservation_and_draft_transport_do_not_count():
    keys = {
        i.key: i.completed
        for i in compute_checklist(
            _data(reservation_state=ReservationState.CANCELLED, transport_state=TransportState.DRAFT), today=TODAY
        ).items
    }
    assert not keys["equipment_confirmed"]
    assert not keys["transport_scheduled"]


def test_quotations_are_listed_newest_first(conn):
    first = create_quotation(conn, name="First", number_of_guests=10)
    second = create_quotation(conn, name="Second", number_of_guests=20)

    assert [int(r["id"]) for r in list_quotations(conn)] == [second, first]

import pytest

from catering.errors import NotFoundError, ValidationError
from catering.models import TransportState
from catering.services.events import create_event
from catering.services.transport import (
    get_or_create_transport_order,
    get_transport_order,
    get_transport_order_by_id,
    list_transport_orders,
    save_transport_order,
    set_transport_state,
)


def _order(conn, location="Club house, Cra 9 # 80-12"):
    event_id = create_event(conn, name="Gala", event_date="2030-05-01", location=location)
    return event_id, get_or_create_transport_order(conn, event_id)


def test_new_order_delivers_to_the_event_location(conn):
    event_id, order = _order(conn)

    assert order.state is TransportState.DRAFT
    assert order.destination_address == "Club house, Cra 9 # 80-12"
    assert get_or_create_transport_order(conn, event_id).id == order.id
    assert get_transport_order(conn, 404) is None
    with pytest.raises(NotFoundError):
        get_transport_order_by_id(conn, 404)


def test_save_validates_fields(conn):
    _, order = _order(conn)

    with pytest.raises(ValidationError):
        save_transport_order(conn, order.id, driver="Pedro")
    with pytest.raises(ValidationError):
        save_transport_order(conn, order.id, pickup_time="2pm")

    saved = save_transport_order(conn, order.id, pickup_time="14:00", vehicle=" Van ", notes="")
    assert (saved.pickup_time, saved.vehicle, saved.notes) == ("14:00", "Van", None)


def test_scheduling_needs_time_and_destination(conn):
    _, order = _order(conn, location="")

    with pytest.raises(ValidationError):
        set_transport_state(conn, order.id, TransportState.SCHEDULED)

    save_transport_order(conn, order.id, pickup_time="14:00", destination_address="Hacienda")
    assert set_transport_state(conn, order.id, "SCHEDULED").state is TransportState.SCHEDULED


def test_transport_state_machine(conn):
    _, order = _order(conn)
    save_transport_order(conn, order.id, pickup_time="14:00")

    with pytest.raises(ValidationError):
        set_transport_state(conn, order.id, TransportState.FINISHED)

    set_transport_state(conn, order.id, TransportState.SCHEDULED)
    set_transport_state(conn, order.id, TransportState.FINISHED)

    with pytest.raises(ValidationError):
        set_transport_state(conn, order.id, TransportState.DRAFT)
    with pytest.raises(ValidationError):
        save_transport_order(conn, order.id, vehicle="Truck")


def test_cancelled_order_can_be_reopened(conn):
    _, order = _order(conn)

    set_transport_state(conn, order.id, TransportState.CANCELLED)
    with pytest.raises(ValidationError):
        save_transport_order(conn, order.id, vehicle="Truck")

    assert set_transport_state(conn, order.id, TransportState.DRAFT).state is TransportState.DRAFT
    assert save_transport_order(conn, order.id, vehicle="Truck").vehicle == "Truck"


def test_list_transport_orders(conn):
    event_id, order = _order(conn)

    [row] = list_transport_orders(conn)

    assert (row["id"], row["event_id"], row["event"], row["state"]) == (order.id, event_id, "Gala", "DRAFT")

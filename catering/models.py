"""
Typed records for rows read from the store.

Every state/type column is parsed into a closed enum at the boundary; a row
carrying a value outside the enum raises ValidationError instead of being
silently defaulted.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Type, TypeVar

from catering.errors import ValidationError

E = TypeVar("E", bound=Enum)


class BillingModality(str, Enum):
    PER_HOUR = "PER_HOUR"
    FIXED_SHIFT_9H = "FIXED_SHIFT_9H"
    FIXED_SHIFT_10H = "FIXED_SHIFT_10H"
    SHIFT_UP_TO_10H_THEN_OVERTIME = "SHIFT_UP_TO_10H_THEN_OVERTIME"
    NIGHT_SHIFT = "NIGHT_SHIFT"
    PER_EVENT = "PER_EVENT"


class BaseUnit(str, Enum):
    GR = "gr"
    ML = "ml"
    UND = "und"


class MovementType(str, Enum):
    PURCHASE = "PURCHASE"
    USE = "USE"
    ADJUSTMENT = "ADJUSTMENT"
    RETURN = "RETURN"


class MovementState(str, Enum):
    DRAFT = "DRAFT"
    CONFIRMED = "CONFIRMED"


class OrderState(str, Enum):
    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    PURCHASED = "PURCHASED"
    CANCELLED = "CANCELLED"


class SettlementStatus(str, Enum):
    PENDING = "PENDING"
    SETTLED = "SETTLED"


class ReservationState(str, Enum):
    DRAFT = "DRAFT"
    CONFIRMED = "CONFIRMED"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"


class EquipmentMovementType(str, Enum):
    OUTBOUND = "OUTBOUND"
    INBOUND = "INBOUND"


class TransportState(str, Enum):
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"


def parse_enum(enum_cls: Type[E], value) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip())
    except ValueError:
        raise ValidationError(f"Unknown {enum_cls.__name__} value: {value!r}.") from None


@dataclass
class Ingredient:
    id: int
    name: str
    base_unit: BaseUnit
    cost_per_unit: float
    current_stock: float

    @classmethod
    def from_row(cls, r) -> "Ingredient":
        return cls(
            id=int(r["id"]),
            name=str(r["name"]),
            base_unit=parse_enum(BaseUnit, r["base_unit"]),
            cost_per_unit=float(r["cost_per_unit"]),
            current_stock=float(r["current_stock"]),
        )


@dataclass
class IngredientSupplier:
    id: int
    ingredient_id: int
    supplier: str
    package_quantity: float
    package_unit: str
    package_price: float
    cost_per_base_unit: float
    is_primary: bool

    @classmethod
    def from_row(cls, r) -> "IngredientSupplier":
        return cls(
            id=int(r["id"]),
            ingredient_id=int(r["ingredient_id"]),
            supplier=str(r["supplier"]),
            package_quantity=float(r["package_quantity"]),
            package_unit=str(r["package_unit"]),
            package_price=float(r["package_price"]),
            cost_per_base_unit=float(r["cost_per_base_unit"]),
            is_primary=bool(r["is_primary"]),
        )


@dataclass
class RecipeLine:
    ingredient_id: int
    quantity_per_batch: float


@dataclass
class Recipe:
    id: int
    name: str
    servings_per_batch: float
    price: float = 0.0
    category: Optional[str] = None
    lines: list[RecipeLine] = field(default_factory=list)

    @classmethod
    def from_row(cls, r, lines: Optional[list[RecipeLine]] = None) -> "Recipe":
        return cls(
            id=int(r["id"]),
            name=str(r["name"]),
            servings_per_batch=float(r["servings_per_batch"] or 0),
            price=float(r["price"] or 0),
            category=r["category"],
            lines=list(lines or []),
        )


@dataclass
class MovementLine:
    ingredient_id: int
    quantity: float
    unit_cost: float = 0.0
    id: Optional[int] = None

    @classmethod
    def from_row(cls, r) -> "MovementLine":
        return cls(
            id=int(r["id"]),
            ingredient_id=int(r["ingredient_id"]),
            quantity=float(r["quantity"]),
            unit_cost=float(r["unit_cost"]),
        )


@dataclass
class InventoryMovement:
    id: int
    movement_type: MovementType
    state: MovementState
    movement_date: str
    event_id: Optional[int] = None
    supplier: Optional[str] = None
    notes: Optional[str] = None
    lines: list[MovementLine] = field(default_factory=list)

    @classmethod
    def from_row(cls, r, lines: Optional[list[MovementLine]] = None) -> "InventoryMovement":
        return cls(
            id=int(r["id"]),
            movement_type=parse_enum(MovementType, r["movement_type"]),
            state=parse_enum(MovementState, r["state"]),
            movement_date=str(r["movement_date"]),
            event_id=int(r["event_id"]) if r["event_id"] is not None else None,
            supplier=r["supplier"],
            notes=r["notes"],
            lines=list(lines or []),
        )


@dataclass
class PurchaseOrderLine:
    id: int
    order_id: int
    ingredient_id: int
    name: str
    unit: str
    quantity_needed: float
    quantity_in_stock: float
    quantity_to_buy: float
    unit_cost: float
    subtotal: float

    @classmethod
    def from_row(cls, r) -> "PurchaseOrderLine":
        return cls(
            id=int(r["id"]),
            order_id=int(r["order_id"]),
            ingredient_id=int(r["ingredient_id"]),
            name=str(r["name"]),
            unit=str(r["unit"]),
            quantity_needed=float(r["quantity_needed"]),
            quantity_in_stock=float(r["quantity_in_stock"]),
            quantity_to_buy=float(r["quantity_to_buy"]),
            unit_cost=float(r["unit_cost"]),
            subtotal=float(r["subtotal"]),
        )


@dataclass
class PurchaseOrder:
    id: int
    event_id: int
    state: OrderState
    estimated_total: float
    notes: Optional[str] = None
    lines: list[PurchaseOrderLine] = field(default_factory=list)

    @classmethod
    def from_row(cls, r, lines: Optional[list[PurchaseOrderLine]] = None) -> "PurchaseOrder":
        return cls(
            id=int(r["id"]),
            event_id=int(r["event_id"]),
            state=parse_enum(OrderState, r["state"]),
            estimated_total=float(r["estimated_total"]),
            notes=r["notes"],
            lines=list(lines or []),
        )


@dataclass
class Event:
    id: int
    name: str
    event_date: str
    location: str = ""
    quotation_id: Optional[int] = None
    required_staff: int = 0
    settlement_status: SettlementStatus = SettlementStatus.PENDING

    @classmethod
    def from_row(cls, r) -> "Event":
        return cls(
            id=int(r["id"]),
            name=str(r["name"]),
            event_date=str(r["event_date"]),
            location=str(r["location"] or ""),
            quotation_id=int(r["quotation_id"]) if r["quotation_id"] is not None else None,
            required_staff=int(r["required_staff"] or 0),
            settlement_status=parse_enum(SettlementStatus, r["settlement_status"]),
        )


@dataclass
class Equipment:
    id: int
    name: str
    category: str
    unit: str
    stock_total: float
    rental_price: float = 0.0
    active: bool = True

    @classmethod
    def from_row(cls, r) -> "Equipment":
        return cls(
            id=int(r["id"]),
            name=str(r["name"]),
            category=str(r["category"] or ""),
            unit=str(r["unit"] or "und"),
            stock_total=float(r["stock_total"]),
            rental_price=float(r["rental_price"] or 0),
            active=bool(r["active"]),
        )


@dataclass
class ReservationItem:
    equipment_id: int
    quantity: float


@dataclass
class Reservation:
    id: int
    event_id: int
    start_date: str
    end_date: str
    state: ReservationState
    notes: Optional[str] = None
    items: list[ReservationItem] = field(default_factory=list)

    @classmethod
    def from_row(cls, r, items: Optional[list[ReservationItem]] = None) -> "Reservation":
        return cls(
            id=int(r["id"]),
            event_id=int(r["event_id"]),
            start_date=str(r["start_date"]),
            end_date=str(r["end_date"]),
            state=parse_enum(ReservationState, r["state"]),
            notes=r["notes"],
            items=list(items or []),
        )


@dataclass
class EquipmentMovementLine:
    equipment_id: int
    quantity: float
    loss: float = 0.0
    id: Optional[int] = None

    @classmethod
    def from_row(cls, r) -> "EquipmentMovementLine":
        return cls(
            id=int(r["id"]),
            equipment_id=int(r["equipment_id"]),
            quantity=float(r["quantity"]),
            loss=float(r["loss"]),
        )


@dataclass
class EquipmentMovement:
    id: int
    movement_type: EquipmentMovementType
    state: MovementState
    movement_date: str
    event_id: Optional[int] = None
    reservation_id: Optional[int] = None
    notes: Optional[str] = None
    lines: list[EquipmentMovementLine] = field(default_factory=list)

    @classmethod
    def from_row(cls, r, lines: Optional[list[EquipmentMovementLine]] = None) -> "EquipmentMovement":
        return cls(
            id=int(r["id"]),
            movement_type=parse_enum(EquipmentMovementType, r["movement_type"]),
            state=parse_enum(MovementState, r["state"]),
            movement_date=str(r["movement_date"]),
            event_id=int(r["event_id"]) if r["event_id"] is not None else None,
            reservation_id=int(r["reservation_id"]) if r["reservation_id"] is not None else None,
            notes=r["notes"],
            lines=list(lines or []),
        )


@dataclass
class TransportOrder:
    id: int
    event_id: int
    state: TransportState
    pickup_name: Optional[str] = None
    pickup_address: Optional[str] = None
    cargo_description: Optional[str] = None
    destination_address: Optional[str] = None
    unload_time: Optional[str] = None
    pickup_time: Optional[str] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    vehicle: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_row(cls, r) -> "TransportOrder":
        return cls(
            id=int(r["id"]),
            event_id=int(r["event_id"]),
            state=parse_enum(TransportState, r["state"]),
            **{k: r[k] for k in TRANSPORT_FIELDS},
        )


TRANSPORT_FIELDS = (
    "pickup_name",
    "pickup_address",
    "cargo_description",
    "destination_address",
    "unload_time",
    "pickup_time",
    "contact_name",
    "contact_phone",
    "vehicle",
    "notes",
)

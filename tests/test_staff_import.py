import io

import pandas as pd
import pytest

from catering.models import BillingModality
from catering.services.pay import list_staff
from catering.services.staff_import import (
    import_staff,
    load_staff_file,
    map_modality,
    map_role,
    normalize_text,
    parse_money,
    process_row,
    read_staff_frame,
    validate_full_name,
    validate_id_number,
)
from .factories import make_staff

CSV = """NOMBRE,CEDULA,ROL,PRESTA SERVICIO POR,VALOR
Maria Lopez,52345678,Mesero,Hora,"$ 23.000"
Pedro,80123456,Chef,Jornada 10 horas,"$ 160.000"
Julian Díaz,1012345678,Decoración,Por evento,"$ 180.000"
"""


def test_normalize_text():
    assert normalize_text("  decoración   floral ") == "DECORACION FLORAL"
    assert normalize_text(None) == ""


def test_role_and_modality_mapping():
    assert map_role("mesero") == "Waiter"
    assert map_role("Wedding planner") == "Coordinator"
    assert map_role("astronaut") is None
    assert map_modality("jornada hasta 10 horas") is BillingModality.SHIFT_UP_TO_10H_THEN_OVERTIME
    assert map_modality("por evento") is BillingModality.PER_EVENT
    assert map_modality("monthly") is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("$ 23.000", 23000),
        ("$1.250.000", 1250000),
        ("23.000,50", 23000.5),
        (45000, 45000),
        (float("nan"), 0),
        ("abc", 0),
        (None, 0),
    ],
)
def test_parse_money(raw, expected):
    assert parse_money(raw) == expected


def test_id_and_name_validation():
    assert validate_id_number("52345678")
    assert validate_id_number(52345678.0)
    assert not validate_id_number("12345")
    assert not validate_id_number("1234567890123")
    assert not validate_id_number("52.345.678")
    assert validate_full_name("Maria Lopez")
    assert not validate_full_name("Pedro")


def test_process_row_collects_every_error():
    row = process_row({"NOMBRE": "Pedro", "CEDULA": "12", "ROL": "astronaut", "PRESTA SERVICIO POR": "?", "VALOR": "0"}, 5)

    assert row.row_number == 5
    assert not row.is_valid
    assert len(row.errors) == 5
    assert row.base_rate == 0


def test_process_row_accepts_column_aliases():
    row = process_row({"nombre": "Maria Lopez", "cedula": 52345678.0, "rol": "Mesero", "modalidad": "Hora", "valor": "$ 23.000"}, 2)

    assert row.is_valid
    assert row.id_number == "52345678"
    assert row.modality is BillingModality.PER_HOUR
    assert row.base_rate == 23000


def test_read_csv_file():
    rows = read_staff_frame(load_staff_file(io.StringIO(CSV), "staff.csv"))

    assert [r.row_number for r in rows] == [2, 3, 4]
    assert [r.is_valid for r in rows] == [True, False, True]
    assert rows[2].role == "Decorator"
    assert rows[2].full_name == "Julian Díaz"


def test_read_excel_file(tmp_path):
    path = tmp_path / "staff.xlsx"
    pd.DataFrame(
        [{"NOMBRE": "Maria Lopez", "CEDULA": 52345678, "ROL": "Mesero", "PRESTA SERVICIO POR": "Hora", "VALOR": 23000}]
    ).to_excel(path, index=False, engine="openpyxl")

    [row] = read_staff_frame(load_staff_file(str(path)))

    assert row.is_valid
    assert row.id_number == "52345678"


def test_import_skips_invalid_and_known_id_numbers(conn):
    make_staff(conn, id_number="1012345678")
    rows = read_staff_frame(load_staff_file(io.StringIO(CSV), "staff.csv"))

    inserted, skipped = import_staff(conn, rows)

    assert (inserted, skipped) == (1, 2)
    names = {r["full_name"] for r in list_staff(conn)}
    assert "Maria Lopez" in names
    assert "Pedro" not in names


def test_import_skips_duplicates_within_the_file(conn):
    rows = read_staff_frame(load_staff_file(io.StringIO(CSV + CSV.splitlines()[1] + "\n"), "staff.csv"))

    assert import_staff(conn, rows) == (2, 2)

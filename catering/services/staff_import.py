from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from typing import IO, Iterable, Optional, Union

import pandas as pd

from catering.db import q, transaction, x
from catering.models import BillingModality

logger = logging.getLogger(__name__)

ROLE_ALIASES = {
    "COCINA": "Chef",
    "CONDUCTOR": "Other",
    "COORDINACION EN HORARIO NO LABORAL": "Coordinator",
    "DECORACION": "Decorator",
    "DECORADOR": "Decorator",
    "DESMONTAJE": "Other",
    "MESERO": "Waiter",
    "MONTAJE Y DESMONTAJE": "Other",
    "TRANSPORTES": "Other",
    "WEDDING PLANNER": "Coordinator",
    "WEEDING PLANNER": "Coordinator",
    "CHEF": "Chef",
    "COORDINADOR": "Coordinator",
    "BARTENDER": "Bartender",
    "TECNICO DE SONIDO": "Sound technician",
    "FOTOGRAFO": "Photographer",
}

MODALITY_ALIASES = {
    "HORA": BillingModality.PER_HOUR,
    "POR HORA": BillingModality.PER_HOUR,
    "JORNADA 10 HORAS": BillingModality.FIXED_SHIFT_10H,
    "JORNADA 9 HORAS": BillingModality.FIXED_SHIFT_9H,
    "JORNADA HASTA 10 HORAS": BillingModality.SHIFT_UP_TO_10H_THEN_OVERTIME,
    "JORNADA NOCTURNA": BillingModality.NIGHT_SHIFT,
    "POR EVENTO": BillingModality.PER_EVENT,
    "EVENTO": BillingModality.PER_EVENT,
}

COLUMN_ALIASES = {
    "full_name": ["NOMBRE", "nombre", "Nombre"],
    "id_number": ["CEDULA", "cedula", "Cedula"],
    "role": ["ROL", "rol", "Rol"],
    "modality": ["PRESTA SERVICIO POR", "PRESTA SERVICIOS POR", "modalidad"],
    "rate": ["VALOR", "Valor", "valor"],
}


@dataclass
class StaffImportRow:
    row_number: int
    full_name: str
    id_number: str
    role: Optional[str]
    modality: Optional[BillingModality]
    base_rate: float
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def normalize_text(value) -> str:
    if value is None:
        return ""
    s = re.sub(r"\s+", " ", str(value).strip().upper())
    s = unicodedata.normalize("NFD", s)
    return "".join(ch for ch in s if unicodedata.category(ch) != "Mn")


def map_role(value) -> Optional[str]:
    role = ROLE_ALIASES.get(normalize_text(value))
    if role is None:
        logger.warning("Unrecognised role: %r", value)
    return role


def map_modality(value) -> Optional[BillingModality]:
    m = MODALITY_ALIASES.get(normalize_text(value))
    if m is None:
        logger.warning("Unrecognised billing modality: %r", value)
    return m


def parse_money(value) -> float:
    """'$ 23.000' -> 23000.0. Dots are thousands separators, a comma is the decimal mark."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return 0.0 if pd.isna(value) else float(value)

    raw = str(value or "").replace("$", "")
    raw = re.sub(r"\s", "", raw).replace(".", "").replace(",", ".")
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid money value: %r", value)
        return 0.0


def validate_id_number(value) -> bool:
    s = _clean_id(value)
    return 6 <= len(s) <= 12 and s.isdigit()


def validate_full_name(value) -> bool:
    s = str(value or "").strip()
    return len(s) >= 3 and " " in s


def _clean_id(value) -> str:
    # Spreadsheets hand back numeric ids as floats (12345678.0).
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value if value is not None else "").strip()


def _pick(row: dict, field_name: str):
    for alias in COLUMN_ALIASES[field_name]:
        v = row.get(alias)
        if v is not None and not (isinstance(v, float) and pd.isna(v)) and str(v).strip() != "":
            return v
    return None


def process_row(row: dict, row_number: int) -> StaffImportRow:
    name = _pick(row, "full_name") or ""
    id_number = _pick(row, "id_number") or ""
    role_raw = _pick(row, "role") or ""
    modality_raw = _pick(row, "modality") or ""
    rate_raw = _pick(row, "rate") or 0

    errors: list[str] = []
    if not validate_full_name(name):
        errors.append("Invalid name (needs first and last name)")
    if not validate_id_number(id_number):
        errors.append("Invalid id number (6 to 12 digits)")

    role = map_role(role_raw)
    if role is None:
        errors.append(f"Unrecognised role: {role_raw!r}")

    modality = map_modality(modality_raw)
    if modality is None:
        errors.append(f"Unrecognised billing modality: {modality_raw!r}")

    rate = parse_money(rate_raw)
    if rate <= 0:
        errors.append("Invalid rate (must be > 0)")

    return StaffImportRow(
        row_number=int(row_number),
        full_name=str(name).strip(),
        id_number=_clean_id(id_number),
        role=role,
        modality=modality,
        base_rate=rate if not errors else 0.0,
        errors=errors,
    )


def read_staff_frame(df: pd.DataFrame) -> list[StaffImportRow]:
    # Row numbers match the spreadsheet: header is row 1.
    return [process_row(rec, i + 2) for i, rec in enumerate(df.to_dict(orient="records"))]


def load_staff_file(source: Union[str, IO], filename: Optional[str] = None) -> pd.DataFrame:
    name = (filename or getattr(source, "name", "") or str(source)).lower()
    if name.endswith(".csv"):
        return pd.read_csv(source, dtype=str)
    return pd.read_excel(source, engine="openpyxl")


def import_staff(conn, rows: Iterable[StaffImportRow]) -> tuple[int, int]:
    """Insert valid rows; rows with errors or an id number already on file are skipped."""
    existing = {str(r["id_number"]) for r in q(conn, "SELECT id_number FROM staff")}
    inserted = 0
    skipped = 0

    with transaction(conn):
        for row in rows:
            if not row.is_valid or row.id_number in existing:
                skipped += 1
                continue
            x(
                conn,
                """
                INSERT INTO staff (full_name, id_number, role, billing_modality, base_rate, overtime_rate)
                VALUES (?, ?, ?, ?, ?, 0)
                """,
                (row.full_name, row.id_number, row.role, row.modality.value, float(row.base_rate)),
            )
            existing.add(row.id_number)
            inserted += 1

    logger.info("Staff import: %d inserted, %d skipped", inserted, skipped)
    return inserted, skipped

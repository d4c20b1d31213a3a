from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

import streamlit as st

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "CATERING_DATA_DIR"

ROUNDING_MODES = {"HALF_UP", "HALF_EVEN"}


@dataclass(frozen=True)
class Rounding:
    """How generated purchase orders round quantities and money."""

    quantity_decimals: int = 2
    money_decimals: int = 0
    mode: str = "HALF_UP"

    def __post_init__(self):
        if self.mode not in ROUNDING_MODES:
            raise ValueError(f"Invalid rounding mode {self.mode!r}. Use one of {sorted(ROUNDING_MODES)}.")


DEFAULT_ROUNDING = Rounding()


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    currency: str = "COP"
    rounding: Rounding = field(default_factory=Rounding)


def _default_data_dir() -> Path:
    return Path.home() / ".catering_backoffice"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
    return {}


def _rounding_from(payload: dict) -> Rounding:
    raw = payload.get("rounding") or {}
    return Rounding(
        quantity_decimals=int(raw.get("quantity_decimals", DEFAULT_ROUNDING.quantity_decimals)),
        money_decimals=int(raw.get("money_decimals", DEFAULT_ROUNDING.money_decimals)),
        mode=str(raw.get("mode", DEFAULT_ROUNDING.mode)).upper(),
    )


def persist_data_dir(data_dir_str: str) -> None:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    cfg = data_dir / CONFIG_FILE_NAME
    payload = _load_persisted_settings(data_dir)
    payload["data_dir"] = str(data_dir)
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # Update session for immediate effect
    st.session_state["catering_data_dir"] = str(data_dir)


def build_settings(data_dir: Path) -> Settings:
    data_dir.mkdir(parents=True, exist_ok=True)
    persisted = _load_persisted_settings(data_dir)
    return Settings(
        data_dir=data_dir,
        db_path=data_dir / "catering.db",
        currency=str(persisted.get("currency", "COP")),
        rounding=_rounding_from(persisted),
    )


@st.cache_resource
def get_settings() -> Settings:
    # Priority order:
    # 1) Session state (set via Data Management page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    if "catering_data_dir" in st.session_state:
        data_dir = Path(st.session_state["catering_data_dir"]).expanduser().resolve()
    elif os.getenv(ENV_DATA_DIR):
        data_dir = Path(os.getenv(ENV_DATA_DIR, "")).expanduser().resolve()
    else:
        default_dir = _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        data_dir = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()

    return build_settings(data_dir)

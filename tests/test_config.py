import json

from catering.config import DEFAULT_ROUNDING, build_settings


def test_defaults(tmp_path):
    settings = build_settings(tmp_path / "data")

    assert settings.db_path == tmp_path / "data" / "catering.db"
    assert settings.db_path.parent.is_dir()
    assert settings.currency == "COP"
    assert settings.rounding == DEFAULT_ROUNDING


def test_settings_file_overrides(tmp_path):
    (tmp_path / "settings.json").write_text(
        json.dumps({"currency": "USD", "rounding": {"quantity_decimals": 1, "money_decimals": 2, "mode": "half_even"}}),
        encoding="utf-8",
    )

    settings = build_settings(tmp_path)

    assert settings.currency == "USD"
    assert settings.rounding.quantity_decimals == 1
    assert settings.rounding.money_decimals == 2
    assert settings.rounding.mode == "HALF_EVEN"


def test_unreadable_settings_fall_back(tmp_path):
    (tmp_path / "settings.json").write_text("{not json", encoding="utf-8")

    assert build_settings(tmp_path).currency == "COP"

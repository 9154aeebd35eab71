from __future__ import annotations

from scriptflow.config.config import AppConfig, LayoutConfig, get_config


def test_defaults_match_card_grid():
    layout = LayoutConfig()
    assert (layout.cell_width, layout.cell_height) == (320, 190)
    assert layout.max_columns is None


def test_invalid_column_cap_is_ignored():
    assert LayoutConfig(max_columns=0).max_columns is None


def test_apply_overrides_sets_column_cap():
    app_config = AppConfig()
    app_config.apply_overrides({"max_columns": 3})
    assert app_config.layout.max_columns == 3
    assert app_config.layout.card_width == 280


def test_yaml_sections_override_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("cache:\n  max_entries: 7\npreview:\n  narrator_name: voice\n", encoding="utf-8")
    app_config = AppConfig().reload(str(path))
    assert app_config.cache.max_entries == 7
    assert app_config.preview.narrator_name == "voice"
    assert app_config.layout.card_height == 150


def test_empty_yaml_falls_back_to_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")
    app_config = AppConfig().reload(str(path))
    assert app_config.node_defaults.new_label_name == "new_label"


def test_get_config_is_a_singleton():
    assert get_config() is get_config()

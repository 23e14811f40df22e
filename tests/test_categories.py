"""Tests for category palette, name hashing and legacy migration."""
import pytest

from agenda.categories import (
    PALETTE_COLORS,
    PREDEFINED_CATEGORIES,
    active_categories,
    add_category,
    color_for_name,
    default_category_settings,
    migrate_categories,
    needs_migration,
    remove_category,
    set_category_color,
    string_to_hash,
    toggle_category,
)
from agenda.schema import Category, CategorySettings


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Name hash
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestStringToHash:

    def test_known_values(self):
        assert string_to_hash("") == 0
        assert string_to_hash("a") == 97
        # 98 + ((97 << 5) - 97)
        assert string_to_hash("ab") == 3105

    def test_deterministic(self):
        assert string_to_hash("Garden") == string_to_hash("Garden")
        assert color_for_name("Garden") == color_for_name("Garden")

    @pytest.mark.parametrize("name,expected", [
        ("Garden", 2169220523),
        ("Proyecto Alfa", 1587589217),
        ("z" * 57, 1838230150),
        ("Reunión semanal con el equipo de diseño", 98715417),
        ("\U0001F600abc", 3018044385),
    ])
    def test_matches_web_client_past_int32_wrap(self, name, expected):
        # values produced by the browser client for the same names
        assert string_to_hash(name) == expected

    def test_non_bmp_uses_utf16_units(self):
        # U+1F600 is two UTF-16 code units (0xD83D, 0xDE00)
        expected = 0xDE00 + ((0xD83D << 5) - 0xD83D)
        assert string_to_hash("\U0001F600") == expected

    def test_color_for_name(self):
        assert color_for_name("Trabajo") == "cat-sky"
        assert color_for_name("Urgente") == "cat-red"
        assert color_for_name("a") == PALETTE_COLORS[97 % len(PALETTE_COLORS)]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Migration
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


LEGACY_INPUTS = [
    ["Trabajo", "Garden"],
    {"masterList": ["Trabajo", "Garden"], "active": ["Garden"]},
    {"masterList": ["Idea"]},
    {"masterList": [{"name": "Design", "color": "cat-sky"}], "active": ["Design"]},
    {"masterList": [], "active": []},
    [],
    None,
    "garbage",
    {"active": ["x"]},
]


class TestMigrateCategories:

    def test_bare_list(self):
        settings = migrate_categories(["Trabajo", "Garden"])
        assert settings.master_list[0] == Category("Trabajo", "cat-sky")
        assert settings.master_list[1] == Category("Garden", color_for_name("Garden"))
        assert settings.active == ["Trabajo", "Garden"]

    def test_string_master_list_keeps_active(self):
        settings = migrate_categories({"masterList": ["Trabajo", "Garden"], "active": ["Garden"]})
        assert settings.names() == ["Trabajo", "Garden"]
        assert settings.active == ["Garden"]

    def test_string_master_list_without_active(self):
        settings = migrate_categories({"masterList": ["Idea"]})
        assert settings == CategorySettings([Category("Idea", "cat-violet")], ["Idea"])

    def test_current_shape_unchanged(self):
        raw = {"masterList": [{"name": "Design", "color": "cat-pink"}], "active": ["Design"]}
        assert migrate_categories(raw) == CategorySettings([Category("Design", "cat-pink")], ["Design"])

    @pytest.mark.parametrize("value", [None, "garbage", 42, {"active": ["x"]}, []])
    def test_invalid_defaults_to_empty(self, value):
        assert migrate_categories(value) == CategorySettings()

    @pytest.mark.parametrize("value", LEGACY_INPUTS)
    def test_idempotent(self, value):
        once = migrate_categories(value)
        assert migrate_categories(once) == once
        assert migrate_categories(once.to_dict()) == once

    def test_needs_migration(self):
        assert needs_migration(["a"])
        assert needs_migration({"masterList": ["a"]})
        assert not needs_migration({"masterList": [{"name": "a", "color": "cat-sky"}]})
        assert not needs_migration([])
        assert not needs_migration(None)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Scope helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestScopeHelpers:

    def test_defaults(self):
        settings = default_category_settings()
        assert [c.name for c in settings.master_list] == [c.name for c in PREDEFINED_CATEGORIES]
        # independent copies
        settings.master_list[0].color = "cat-pink"
        assert PREDEFINED_CATEGORIES[0].color == "cat-sky"

    def test_add_rejects_duplicates_case_insensitively(self):
        settings = CategorySettings()
        assert add_category(settings, "  Garden ")
        assert settings.names() == ["Garden"]
        assert settings.active == ["Garden"]
        assert settings.master_list[0].color in PALETTE_COLORS
        assert not add_category(settings, "GARDEN")
        assert not add_category(settings, "")

    def test_remove(self):
        settings = CategorySettings([Category("A", "cat-sky"), Category("B", "cat-red")], ["A", "B"])
        result = remove_category(settings, "A")
        assert result.names() == ["B"]
        assert result.active == ["B"]
        assert settings.names() == ["A", "B"]

    def test_toggle_and_active_order(self):
        settings = CategorySettings([Category("A", "cat-sky"), Category("B", "cat-red")], ["B"])
        assert toggle_category(settings, "A") is True
        assert active_categories(settings) == ["A", "B"]
        assert toggle_category(settings, "B") is False
        assert active_categories(settings) == ["A"]

    def test_active_ignores_orphans(self):
        settings = CategorySettings([Category("A", "cat-sky")], ["A", "Gone"])
        assert active_categories(settings) == ["A"]

    def test_set_color(self):
        settings = CategorySettings([Category("A", "cat-sky")], ["A"])
        assert set_category_color(settings, "A", "cat-lime")
        assert settings.master_list[0].color == "cat-lime"
        assert not set_category_color(settings, "Z", "cat-lime")

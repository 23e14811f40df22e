"""
Category palette, defaults and legacy-shape migration.

Category scopes come in two flavours, a user's general scope and a per-project
scope, and both use CategorySettings. Older data stored a scope as a bare list
of names, or as {masterList: [names], active: [...]}; migrate_categories()
turns either into the current shape.
"""
import random
from typing import Any, List, Optional

from .schema import Category, CategorySettings

PALETTE_COLORS = [
    "cat-sky", "cat-green", "cat-amber", "cat-indigo", "cat-rose", "cat-teal",
    "cat-fuchsia", "cat-lime", "cat-cyan", "cat-violet", "cat-red", "cat-orange",
    "cat-yellow", "cat-emerald", "cat-blue", "cat-purple", "cat-pink",
]

PROJECT_COLORS = PALETTE_COLORS

PREDEFINED_CATEGORIES = [
    Category("Trabajo", "cat-sky"), Category("Personal", "cat-green"),
    Category("Hogar", "cat-amber"), Category("Estudios", "cat-indigo"),
    Category("Salud", "cat-rose"), Category("Compras", "cat-teal"),
    Category("Ocio", "cat-lime"), Category("Urgente", "cat-red"),
    Category("Idea", "cat-violet"),
]

_PREDEFINED_COLORS = {c.name: c.color for c in PREDEFINED_CATEGORIES}


def default_category_settings() -> CategorySettings:
    """The predefined categories, all active."""
    return CategorySettings(
        master_list=[Category(c.name, c.color) for c in PREDEFINED_CATEGORIES],
        active=[c.name for c in PREDEFINED_CATEGORIES],
    )


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def string_to_hash(name: str) -> int:
    """
    hash = code + ((hash << 5) - hash) over UTF-16 code units, absolute value.

    The shift truncates to a signed 32-bit integer and the rest of the
    arithmetic does not, so colors stay identical to the ones the web client
    assigned to the same names.
    """
    raw = name.encode("utf-16-le")
    h = 0
    for i in range(0, len(raw), 2):
        code = raw[i] | (raw[i + 1] << 8)
        h = code + (_int32(_int32(h) << 5) - h)
    return abs(h)


def color_for_name(name: str) -> str:
    """Predefined color if the name is a predefined category, else a hashed palette color."""
    predefined = _PREDEFINED_COLORS.get(name)
    if predefined:
        return predefined
    return PALETTE_COLORS[string_to_hash(name) % len(PALETTE_COLORS)]


def _resolve_master_list(items: List[Any]) -> List[Category]:
    master = []
    for item in items:
        if isinstance(item, str):
            master.append(Category(name=item, color=color_for_name(item)))
        elif isinstance(item, dict) and isinstance(item.get("name"), str):
            master.append(Category(name=item["name"], color=item.get("color") or color_for_name(item["name"])))
    return master


def migrate_categories(value: Any) -> CategorySettings:
    """
    Normalize any stored category scope into CategorySettings.

      ["Work", ...]                          -> colored masterList, all active
      {"masterList": ["Work", ...], ...}     -> colored masterList, active kept
      {"masterList": [{name, color}], ...}   -> unchanged
      CategorySettings                       -> unchanged
      anything else                          -> empty settings

    Idempotent: feeding the result back in returns an equal value.
    """
    if isinstance(value, CategorySettings):
        return value

    if isinstance(value, list) and value and isinstance(value[0], str):
        master = _resolve_master_list(value)
        return CategorySettings(master_list=master, active=[c.name for c in master])

    if isinstance(value, dict) and isinstance(value.get("masterList"), list):
        items = value["masterList"]
        if items and isinstance(items[0], str):
            master = _resolve_master_list(items)
            active = value.get("active")
            if not isinstance(active, list):
                active = [c.name for c in master]
            return CategorySettings(master_list=master, active=[a for a in active if isinstance(a, str)])
        return CategorySettings.from_dict(value)

    return CategorySettings()


def needs_migration(value: Any) -> bool:
    """True when a stored scope is in a legacy shape."""
    if isinstance(value, list):
        return bool(value) and isinstance(value[0], str)
    if isinstance(value, dict):
        items = value.get("masterList")
        return isinstance(items, list) and bool(items) and isinstance(items[0], str)
    return False


# ── Insertion-time helpers ──────────────────────────────────────────────────


def find_category(settings: CategorySettings, name: str) -> Optional[Category]:
    """Case-insensitive lookup in the master list."""
    wanted = name.strip().lower()
    for cat in settings.master_list:
        if cat.name.lower() == wanted:
            return cat
    return None


def add_category(settings: CategorySettings, name: str, color: Optional[str] = None) -> bool:
    """
    Add a category to a scope and activate it.

    Rejects blank names and names already in the master list (compared
    case-insensitively). Returns True if the scope changed.
    """
    trimmed = name.strip()
    if not trimmed or find_category(settings, trimmed):
        return False
    settings.master_list.append(Category(name=trimmed, color=color or random.choice(PALETTE_COLORS)))
    settings.active.append(trimmed)
    return True


def remove_category(settings: CategorySettings, name: str) -> CategorySettings:
    """Return a copy of the scope without the named category."""
    return CategorySettings(
        master_list=[c for c in settings.master_list if c.name != name],
        active=[a for a in settings.active if a != name],
    )


def toggle_category(settings: CategorySettings, name: str) -> bool:
    """Flip whether a category is active. Returns the new active state."""
    if name in settings.active:
        settings.active = [a for a in settings.active if a != name]
        return False
    settings.active.append(name)
    return True


def set_category_color(settings: CategorySettings, name: str, color: str) -> bool:
    for cat in settings.master_list:
        if cat.name == name:
            cat.color = color
            return True
    return False


def active_categories(settings: CategorySettings) -> List[str]:
    """Active names that still exist in the master list, in master-list order."""
    active = set(settings.active)
    return [c.name for c in settings.master_list if c.name in active]

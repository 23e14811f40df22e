"""
Ledger load/save helpers.

A ledger is a homogeneous collection of records stored as one JSON array in
one storage slot. Loading is fail-open: a slot that does not parse, or whose
top level is not an array, is erased and read as empty, and individual
records that fail their shape check are dropped from the result (they stay
on disk until the next save rewrites the slot).
"""
import json
import logging
import sqlite3
from typing import Any, Callable, Dict, List, Optional

from .storage import Storage

logger = logging.getLogger(__name__)

# Slot suffixes; the full key is config.key_prefix + suffix
USERS = "users"
NOTES = "notes"
GROUPS = "groups"
PROJECTS = "projects"
SESSION = "session"
USER_CATEGORIES = "user_categories"
CUSTOM_TABS = "custom_tabs"

SLOTS = (USERS, NOTES, GROUPS, PROJECTS, SESSION, USER_CATEGORIES, CUSTOM_TABS)

Record = Dict[str, Any]

# read_raw result for a key that is absent (or was corrupt and has been erased)
MISSING = object()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Shape validators
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _has_str(record: Any, *fields: str) -> bool:
    return isinstance(record, dict) and all(isinstance(record.get(f), str) for f in fields)


def _optional(record: Record, name: str, kind) -> bool:
    return record.get(name) is None or isinstance(record[name], kind)


def is_user(record: Any) -> bool:
    return _has_str(record, "id", "username", "password")


def is_note(record: Any) -> bool:
    return (
        _has_str(record, "id", "text")
        and _optional(record, "categories", list)
        and _optional(record, "parentId", str)
        and _optional(record, "projectIds", list)
        and _optional(record, "sharedWith", dict)
    )


def is_group(record: Any) -> bool:
    return _has_str(record, "id", "name") and _optional(record, "members", list)


def is_project(record: Any) -> bool:
    return _has_str(record, "id", "name")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Migrations
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def migrate_note(record: Any) -> Any:
    """Rewrite a legacy singular projectId into projectIds."""
    if isinstance(record, dict) and record.get("projectId") and record.get("projectIds") is None:
        record = dict(record)
        record["projectIds"] = [record.pop("projectId")]
    return record


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Slots
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class Slot:
    """One JSON document under one storage key."""

    def __init__(self, storage: Storage, key: str):
        self.storage = storage
        self.key = key

    def read_raw(self) -> Any:
        """
        Parse the slot. Returns MISSING when absent; erases and returns MISSING
        when corrupt. A stored JSON null comes back as None.
        """
        raw = self.storage.get(self.key)
        if raw is None:
            return MISSING
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error("Failed to parse %s from storage: %s", self.key, e)
            self.clear()
            return MISSING

    def write(self, data: Any) -> bool:
        try:
            self.storage.set(self.key, json.dumps(data, ensure_ascii=False))
            return True
        except (sqlite3.Error, OSError, TypeError, ValueError) as e:
            logger.error("Failed to save %s: %s", self.key, e)
            return False

    def clear(self) -> None:
        self.storage.remove(self.key)


class Ledger(Slot):
    """A JSON array of records with per-record validation."""

    def __init__(
        self,
        storage: Storage,
        key: str,
        validator: Callable[[Any], bool],
        migrate: Optional[Callable[[Any], Any]] = None,
    ):
        super().__init__(storage, key)
        self.validator = validator
        self.migrate = migrate

    def load(self) -> List[Record]:
        data = self.read_raw()
        if data is MISSING:
            return []
        if not isinstance(data, list):
            logger.error("%s is not a list (got %s), resetting slot", self.key, type(data).__name__)
            self.clear()
            return []
        if self.migrate:
            data = [self.migrate(r) for r in data]
        records = [r for r in data if self.validator(r)]
        dropped = len(data) - len(records)
        if dropped:
            logger.warning("Dropped %d malformed record(s) from %s", dropped, self.key)
        return records

    def save(self, records: List[Record]) -> bool:
        return self.write(records)


class MapSlot(Slot):
    """A JSON object slot, e.g. user id -> general category settings."""

    def load(self) -> Dict[str, Any]:
        data = self.read_raw()
        if data is MISSING:
            return {}
        if not isinstance(data, dict):
            logger.error("%s is not an object, resetting slot", self.key)
            self.clear()
            return {}
        return data


class ListSlot(Slot):
    """A JSON array slot without per-record validation beyond being objects."""

    def load(self) -> List[Record]:
        data = self.read_raw()
        if data is MISSING:
            return []
        if not isinstance(data, list):
            logger.error("%s is not a list, resetting slot", self.key)
            self.clear()
            return []
        return [r for r in data if isinstance(r, dict)]

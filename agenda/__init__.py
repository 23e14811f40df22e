# Agenda: local persistence and consistency core for notes, tasks and sharing
#
# Components:
#   config.py      - AgendaConfig (YAML + environment)
#   schema.py      - Data model (User, Note, NoteDraft, Project, Group, CategorySettings, CustomTab)
#   storage.py     - Key/value substrate (SQLite, in-memory fallback)
#   ledger.py      - Ledger load/save, shape validators, note migration
#   categories.py  - Palette, predefined categories, legacy category migration
#   tabs.py        - Custom view tabs (derived ids, filtering)
#   store.py       - Store: auth, notes, categories, groups, projects
#   suggest.py     - AI note normalizer client
#   reminders.py   - Upcoming reminders
from .config import AgendaConfig
from .storage import MemoryStorage, SQLiteStorage, open_storage
from .store import Store
from .suggest import SuggestionClient, SuggestionError

__all__ = [
    "AgendaConfig",
    "MemoryStorage",
    "SQLiteStorage",
    "Store",
    "SuggestionClient",
    "SuggestionError",
    "open_storage",
]

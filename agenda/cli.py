"""
agenda command line.

Usage:
    agenda stats
    agenda reminders alice
    agenda suggest alice "reunion con el arquitecto mañana a las 5" --add
    agenda --db /tmp/agenda.db --config config/agenda.yaml stats
"""
import argparse
import json
import logging
import sys

from .categories import active_categories
from .config import AgendaConfig
from .reminders import due_reminders
from .schema import NoteDraft
from .store import Store
from .suggest import SuggestionClient, SuggestionError, apply_suggestion


def _find_user(store: Store, username: str):
    user = next((u for u in store.get_all_users() if u.username == username), None)
    if user is None:
        print(f"Unknown user: {username}", file=sys.stderr)
    return user


def cmd_stats(store: Store, cfg: AgendaConfig, args) -> int:
    stats = store.get_stats()
    for key, value in stats.items():
        print(f"{key:16} {value}")
    return 0


def cmd_reminders(store: Store, cfg: AgendaConfig, args) -> int:
    user = _find_user(store, args.username)
    if user is None:
        return 1
    notes = store.get_notes_for_user(user.id)
    reminders = due_reminders(notes.my_notes + notes.shared_notes)
    if not reminders:
        print("No upcoming reminders.")
    for r in reminders:
        print(f"{r.due_at:%Y-%m-%d %H:%M}  {r.text}")
    return 0


def cmd_suggest(store: Store, cfg: AgendaConfig, args) -> int:
    user = _find_user(store, args.username)
    if user is None:
        return 1
    try:
        client = SuggestionClient.from_config(cfg)
    except SuggestionError as e:
        print(str(e), file=sys.stderr)
        return 2

    categories = active_categories(store.get_general_categories(user.id))
    suggestion = client.suggest(args.text, categories)
    if suggestion is None:
        print("Nothing to suggest for blank text.", file=sys.stderr)
        return 1
    print(json.dumps(suggestion.to_dict(), ensure_ascii=False, indent=2))

    if args.add:
        draft = NoteDraft(text=args.text, owner_id=user.id, owner_name=user.username)
        note = store.add_note(apply_suggestion(draft, suggestion))
        print(f"Added note {note.id}")
    return 0


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Agenda notes store")
    ap.add_argument("--config", default=None, help="Path to agenda.yaml")
    ap.add_argument("--db", default=None, help="SQLite file (overrides config)")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("stats", help="Show record counts per ledger")
    rem = sub.add_parser("reminders", help="List upcoming reminders for a user")
    rem.add_argument("username")
    sug = sub.add_parser("suggest", help="Normalize a note with the AI endpoint")
    sug.add_argument("username")
    sug.add_argument("text")
    sug.add_argument("--add", action="store_true", help="Store the normalized note")

    args = ap.parse_args(argv)

    cfg = AgendaConfig.load(args.config)
    if args.db:
        cfg.db_path = args.db

    logging.basicConfig(
        level=getattr(logging, cfg.log_level),
        format="%(asctime)s [agenda] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    store = Store.from_config(cfg)
    handlers = {"stats": cmd_stats, "reminders": cmd_reminders, "suggest": cmd_suggest}
    return handlers[args.command](store, cfg, args)


if __name__ == "__main__":
    sys.exit(main())

"""Upcoming reminders for open notes that carry a date and time."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from .schema import Note

logger = logging.getLogger(__name__)


@dataclass
class Reminder:
    note_id: str
    text: str
    due_at: datetime  # naive, local time


def reminder_time(note: Note) -> Optional[datetime]:
    """When a note should fire: the explicit reminder if set, else date + time."""
    if note.reminder is not None:
        try:
            return datetime.fromtimestamp(note.reminder / 1000)
        except (OverflowError, OSError, ValueError, TypeError):
            logger.debug("Skipping note %s with out-of-range reminder %r", note.id, note.reminder)
            return None
    if not note.date or not note.time:
        return None
    try:
        return datetime.fromisoformat(f"{note.date}T{note.time}")
    except ValueError:
        logger.debug("Skipping note %s with unparseable date/time %r %r", note.id, note.date, note.time)
        return None


def due_reminders(notes: Iterable[Note], now: Optional[datetime] = None) -> List[Reminder]:
    """Reminders still in the future for notes that are not completed, soonest first."""
    now = now or datetime.now()
    pending = []
    for note in notes:
        if note.is_completed:
            continue
        due = reminder_time(note)
        if due is not None and due > now:
            pending.append(Reminder(note_id=note.id, text=note.text, due_at=due))
    return sorted(pending, key=lambda r: r.due_at)

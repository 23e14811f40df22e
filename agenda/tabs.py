"""
Custom view tabs.

A tab's id is derived from its selected category names ("A+B" for several,
"A" for one, prefixed with "<project id>-" for project tabs). The id is
only a de-duplication key: adding a tab whose id already exists selects the
existing tab instead of adding a second one.
"""
from typing import Iterable, List, Optional, Tuple, Union

from .schema import CustomTab, Note, TabType

TabValue = Union[str, List[str]]


def tab_id(value: TabValue, project_id: Optional[str] = None) -> str:
    base = "+".join(value) if isinstance(value, list) else value
    return f"{project_id}-{base}" if project_id else base


def tab_type(value: TabValue, project_id: Optional[str] = None) -> TabType:
    multi = isinstance(value, list)
    if project_id:
        return TabType.PROJECT_MULTI_CATEGORY if multi else TabType.PROJECT_CATEGORY
    return TabType.MULTI_CATEGORY if multi else TabType.CATEGORY


def default_tab_name(value: TabValue) -> str:
    """Label for a tab when the caller does not name it."""
    if not isinstance(value, list):
        return value
    if len(value) <= 3:
        return " + ".join(value)
    return f"{', '.join(value[:2])}, ..."


def make_tab(value: TabValue, name: Optional[str] = None, project_id: Optional[str] = None) -> CustomTab:
    if isinstance(value, list):
        value = list(value)
    return CustomTab(
        id=tab_id(value, project_id),
        name=name or default_tab_name(value),
        type=tab_type(value, project_id),
        value=value,
    )


def add_tab(tabs: List[CustomTab], tab: CustomTab) -> Tuple[List[CustomTab], CustomTab]:
    """
    Append a tab unless one with the same id exists.

    Returns (tabs, selected) where selected is the existing tab on a
    duplicate, or the new tab.
    """
    for existing in tabs:
        if existing.id == tab.id:
            return tabs, existing
    return tabs + [tab], tab


def remove_tab(tabs: List[CustomTab], tab_id_: str) -> List[CustomTab]:
    return [t for t in tabs if t.id != tab_id_]


def filter_notes(notes: Iterable[Note], tab: CustomTab) -> List[Note]:
    """Notes shown under a tab: carrying the category, or any of the categories for multi tabs."""
    if tab.type.is_multi:
        wanted = set(tab.values())
        return [n for n in notes if wanted.intersection(n.categories)]
    return [n for n in notes if tab.value in n.categories]

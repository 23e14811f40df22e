"""
AI note normalizer.

Sends a note's raw text and the permitted category names to a text model
endpoint and turns the reply into a Suggestion:
  - improved text (date, time and place removed from it)
  - extracted date (YYYY-MM-DD), time (HH:MM), location
  - up to 3 categories, restricted to the permitted names

The store treats the result as ordinary note fields; apply_suggestion()
pours it into a NoteDraft. The same client also rewrites note text, writes
one-line note descriptions, polishes project descriptions and proposes
categories for a new project.
"""
import json
import logging
import re
from dataclasses import dataclass, field, replace
from datetime import date as date_cls
from typing import Any, Dict, List, Optional

import requests

from .config import AgendaConfig
from .schema import NoteDraft

logger = logging.getLogger(__name__)

MAX_CATEGORIES = 3

SUGGEST_PROMPT = """Analyze the following note written by a user. Your task has two parts:
1. Rewrite the main text of the note so it is clearer, more concise and professional. Fix grammar and typos. Once you extract the date, time and place, remove them from the rewritten text. The rewritten text must only be the core of the task (e.g. "Meeting with the architect").
2. Extract structured data from the text: a date (YYYY-MM-DD), a time (24h HH:MM), a location if one is mentioned, and up to 3 relevant categories from the provided list.

If a field is not mentioned, its value must be null.
Today is {today}.

User text:
"{text}"

Available categories:
[{categories}]

Respond with ONLY a JSON object of the form:
{{"improvedText": "...", "extractedData": {{"date": null, "time": null, "location": null, "categories": []}}}}"""

IMPROVE_PROMPT = (
    "Rewrite the following note text so it is clearer, more concise and professional. "
    "Fix any grammar or typing errors. Respond only with the improved text. "
    'Original text: "{text}"'
)

DESCRIBE_PROMPT = (
    "Write a very short, one-sentence description of the following note that captures "
    "the essence of the task. Respond only with the description. "
    'Note text: "{text}"'
)

PROJECT_DESCRIPTION_PROMPT = (
    "Rewrite the following project description so it is clearer, inspiring and well "
    "structured, focusing on the goals and scope. Respond only with the improved description. "
    'Original description: "{description}"'
)

PROJECT_CATEGORIES_PROMPT = (
    "Analyze the following project description and suggest 5 to 7 relevant, actionable "
    'task categories. Respond only with a JSON object with a "categories" key holding an '
    'array of strings. Project description: "{description}"'
)


class SuggestionError(Exception):
    """Raised when the normalizer endpoint is not configured."""
    pass


@dataclass
class Suggestion:
    improved_text: str
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    categories: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "improvedText": self.improved_text,
            "extractedData": {
                "date": self.date,
                "time": self.time,
                "location": self.location,
                "categories": list(self.categories),
            },
        }


def build_prompt(text: str, categories: List[str], today: Optional[date_cls] = None) -> str:
    """Build the model prompt for one note."""
    today = today or date_cls.today()
    return SUGGEST_PROMPT.format(
        today=today.isoformat(),
        text=text,
        categories=", ".join(f'"{c}"' for c in categories),
    )


def fallback_suggestion(text: str) -> Suggestion:
    """The original text with nothing extracted."""
    return Suggestion(improved_text=text)


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value.strip() else None


def _load_reply(response: str) -> Optional[Dict[str, Any]]:
    """Decode a JSON object from a model reply, tolerating code fences and prose around it."""
    response = response.strip()
    if response.startswith("```"):
        response = re.sub(r'^```(?:json)?\s*', '', response)
        response = re.sub(r'\s*```$', '', response)

    try:
        result = json.loads(response)
    except json.JSONDecodeError:
        match = re.search(r'\{.*\}', response, re.DOTALL)
        if not match:
            return None
        try:
            result = json.loads(match.group())
        except json.JSONDecodeError:
            return None
    return result if isinstance(result, dict) else None


def parse_suggestion(response: str, text: str, categories: List[str]) -> Suggestion:
    """Parse the model's JSON reply. Anything unusable falls back to the original text."""
    result = _load_reply(response)
    if result is None:
        return fallback_suggestion(text)

    extracted = result.get("extractedData")
    if not isinstance(extracted, dict):
        extracted = {}

    allowed = set(categories)
    picked = extracted.get("categories")
    if not isinstance(picked, list):
        picked = []
    picked = [c for c in picked if isinstance(c, str) and c in allowed]

    return Suggestion(
        improved_text=_str_or_none(result.get("improvedText")) or text,
        date=_str_or_none(extracted.get("date")),
        time=_str_or_none(extracted.get("time")),
        location=_str_or_none(extracted.get("location")),
        categories=list(dict.fromkeys(picked))[:MAX_CATEGORIES],
    )


def parse_category_list(response: str) -> List[str]:
    """Category names from a {"categories": [...]} reply; [] when unusable."""
    result = _load_reply(response)
    names = result.get("categories") if result else None
    if not isinstance(names, list):
        return []
    return list(dict.fromkeys(n.strip() for n in names if isinstance(n, str) and n.strip()))


def apply_suggestion(draft: NoteDraft, suggestion: Suggestion) -> NoteDraft:
    """
    Return a copy of the draft carrying the suggestion.

    Extracted fields only overwrite the draft when present; suggested
    categories are merged after the ones already on the draft.
    """
    return replace(
        draft,
        text=suggestion.improved_text or draft.text,
        date=suggestion.date or draft.date,
        time=suggestion.time or draft.time,
        location=suggestion.location or draft.location,
        categories=list(dict.fromkeys(draft.categories + suggestion.categories)),
    )


class SuggestionClient:
    """HTTP client for the note normalizer endpoint."""

    def __init__(self, url: str, api_key: Optional[str] = None, timeout: float = 15.0):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

    @classmethod
    def from_config(cls, cfg: AgendaConfig) -> "SuggestionClient":
        if not cfg.suggest_url:
            raise SuggestionError(
                "No suggest_url configured. Set it in agenda.yaml or export AGENDA_SUGGEST_URL."
            )
        return cls(cfg.suggest_url, api_key=cfg.suggest_api_key, timeout=cfg.suggest_timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _complete(self, prompt: str) -> Optional[str]:
        """POST one prompt and return the stripped reply text, or None on failure."""
        try:
            r = requests.post(
                self.url,
                json={"prompt": prompt},
                headers=self._headers(),
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.RequestException as e:
            logger.error("Normalizer request failed: %s", e)
            return None
        return r.text.strip()

    def suggest(self, text: str, categories: List[str]) -> Optional[Suggestion]:
        """
        Normalize one note. Returns None for blank text; on any transport or
        parse failure returns the original text with nothing extracted.
        """
        if not text.strip():
            return None
        reply = self._complete(build_prompt(text, categories))
        if reply is None:
            return fallback_suggestion(text)
        return parse_suggestion(reply, text, categories)

    def improve_text(self, text: str) -> Optional[str]:
        """Rewrite a note's text. None for blank text, failures or an empty reply."""
        if not text.strip():
            return None
        return self._complete(IMPROVE_PROMPT.format(text=text)) or None

    def describe_note(self, text: str) -> Optional[str]:
        """One-sentence description of a note."""
        if not text.strip():
            return None
        return self._complete(DESCRIBE_PROMPT.format(text=text)) or None

    def improve_project_description(self, description: str) -> Optional[str]:
        if not description.strip():
            return None
        return self._complete(PROJECT_DESCRIPTION_PROMPT.format(description=description)) or None

    def suggest_project_categories(self, description: str) -> Optional[List[str]]:
        """Category names for a new project, or None when the request fails."""
        if not description.strip():
            return None
        reply = self._complete(PROJECT_CATEGORIES_PROMPT.format(description=description))
        if reply is None:
            return None
        return parse_category_list(reply)

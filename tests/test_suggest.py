"""
Tests for the AI note normalizer: prompt, reply parsing, HTTP client.
"""
from datetime import date
from unittest.mock import MagicMock, patch

import pytest
import requests

from agenda.config import AgendaConfig
from agenda.schema import NoteDraft
from agenda.suggest import (
    Suggestion,
    SuggestionClient,
    SuggestionError,
    apply_suggestion,
    build_prompt,
    parse_category_list,
    parse_suggestion,
)

CATEGORIES = ["Trabajo", "Personal", "Urgente", "Reunión"]
TEXT = "reunion con el arquitecto mañana a las 5 en la oficina"

REPLY = """{
  "improvedText": "Reunión con el arquitecto",
  "extractedData": {
    "date": "2026-10-19",
    "time": "17:00",
    "location": "Oficina",
    "categories": ["Reunión", "Trabajo"]
  }
}"""


def test_build_prompt():
    prompt = build_prompt(TEXT, CATEGORIES, today=date(2026, 10, 18))
    assert "Today is 2026-10-18." in prompt
    assert f'"{TEXT}"' in prompt
    assert '"Trabajo", "Personal", "Urgente", "Reunión"' in prompt
    assert '{"improvedText": "...",' in prompt


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Reply parsing
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestParseSuggestion:

    def test_plain_json(self):
        s = parse_suggestion(REPLY, TEXT, CATEGORIES)
        assert s == Suggestion(
            improved_text="Reunión con el arquitecto",
            date="2026-10-19",
            time="17:00",
            location="Oficina",
            categories=["Reunión", "Trabajo"],
        )

    def test_code_fenced(self):
        s = parse_suggestion(f"```json\n{REPLY}\n```", TEXT, CATEGORIES)
        assert s.improved_text == "Reunión con el arquitecto"

    def test_json_wrapped_in_prose(self):
        s = parse_suggestion(f"Here you go:\n{REPLY}\nHope it helps", TEXT, CATEGORIES)
        assert s.time == "17:00"

    def test_unknown_categories_dropped_and_capped(self):
        reply = (
            '{"improvedText": "x", "extractedData": '
            '{"categories": ["Trabajo", "Invented", "Trabajo", "Personal", "Urgente", "Reunión"]}}'
        )
        s = parse_suggestion(reply, TEXT, CATEGORIES)
        assert s.categories == ["Trabajo", "Personal", "Urgente"]

    def test_nulls_and_missing_fields(self):
        reply = '{"improvedText": "Comprar pan", "extractedData": {"date": null, "location": ""}}'
        s = parse_suggestion(reply, TEXT, CATEGORIES)
        assert s.improved_text == "Comprar pan"
        assert s.date is None and s.time is None and s.location is None
        assert s.categories == []

    @pytest.mark.parametrize("reply", ["not json at all", "[1, 2, 3]", "{broken", '{"improvedText": 7}'])
    def test_unusable_reply_falls_back(self, reply):
        s = parse_suggestion(reply, TEXT, CATEGORIES)
        assert s.improved_text == TEXT
        assert s.categories == []

    def test_to_dict(self):
        d = parse_suggestion(REPLY, TEXT, CATEGORIES).to_dict()
        assert d["improvedText"] == "Reunión con el arquitecto"
        assert d["extractedData"]["categories"] == ["Reunión", "Trabajo"]


def test_apply_suggestion_merges_into_draft():
    draft = NoteDraft(text=TEXT, owner_id="u1", owner_name="alice",
                      location="Casa", categories=["Personal"])
    s = Suggestion(improved_text="Reunión con el arquitecto", date="2026-10-19",
                   categories=["Trabajo", "Personal"])
    merged = apply_suggestion(draft, s)
    assert merged.text == "Reunión con el arquitecto"
    assert merged.date == "2026-10-19"
    assert merged.location == "Casa"
    assert merged.categories == ["Personal", "Trabajo"]
    # original draft untouched
    assert draft.text == TEXT
    assert draft.categories == ["Personal"]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# HTTP client
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestSuggestionClient:

    def test_from_config_requires_url(self):
        with pytest.raises(SuggestionError):
            SuggestionClient.from_config(AgendaConfig(suggest_url=None))

    def test_from_config(self, monkeypatch):
        monkeypatch.setenv("AGENDA_SUGGEST_API_KEY", "secret")
        client = SuggestionClient.from_config(
            AgendaConfig(suggest_url="http://localhost:9000/suggest", suggest_timeout=3)
        )
        assert client.url == "http://localhost:9000/suggest"
        assert client.api_key == "secret"
        assert client.timeout == 3

    def test_blank_text_skips_request(self):
        client = SuggestionClient("http://localhost:9000/suggest")
        with patch("agenda.suggest.requests.post") as post:
            assert client.suggest("   ", CATEGORIES) is None
        post.assert_not_called()

    def test_suggest(self):
        client = SuggestionClient("http://localhost:9000/suggest", api_key="k", timeout=5)
        response = MagicMock(text=REPLY)
        with patch("agenda.suggest.requests.post", return_value=response) as post:
            s = client.suggest(TEXT, CATEGORIES)
        assert s.location == "Oficina"
        _, kwargs = post.call_args
        assert kwargs["headers"]["Authorization"] == "Bearer k"
        assert kwargs["timeout"] == 5
        assert TEXT in kwargs["json"]["prompt"]

    def test_transport_failure_falls_back(self):
        client = SuggestionClient("http://localhost:9000/suggest")
        with patch("agenda.suggest.requests.post", side_effect=requests.ConnectionError("down")):
            s = client.suggest(TEXT, CATEGORIES)
        assert s == Suggestion(improved_text=TEXT)

    def test_http_error_falls_back(self):
        client = SuggestionClient("http://localhost:9000/suggest")
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("500")
        with patch("agenda.suggest.requests.post", return_value=response):
            s = client.suggest(TEXT, CATEGORIES)
        assert s.improved_text == TEXT

    def test_improve_text(self):
        client = SuggestionClient("http://localhost:9000/suggest")
        with patch("agenda.suggest.requests.post", return_value=MagicMock(text="  Call the architect\n")) as post:
            assert client.improve_text("cal the arquitect") == "Call the architect"
        assert '"cal the arquitect"' in post.call_args.kwargs["json"]["prompt"]

    def test_describe_note(self):
        client = SuggestionClient("http://localhost:9000/suggest")
        with patch("agenda.suggest.requests.post", return_value=MagicMock(text="Review the floor plan.")):
            assert client.describe_note("Meeting with the architect") == "Review the floor plan."

    @pytest.mark.parametrize("method", ["improve_text", "describe_note", "improve_project_description"])
    def test_text_operations_return_none_on_failure(self, method):
        client = SuggestionClient("http://localhost:9000/suggest")
        assert getattr(client, method)("  ") is None
        with patch("agenda.suggest.requests.post", side_effect=requests.Timeout("slow")):
            assert getattr(client, method)("something") is None
        with patch("agenda.suggest.requests.post", return_value=MagicMock(text="   ")):
            assert getattr(client, method)("something") is None

    def test_suggest_project_categories(self):
        client = SuggestionClient("http://localhost:9000/suggest")
        reply = '```json\n{"categories": ["Diseño", "Backend", "Diseño", 4]}\n```'
        with patch("agenda.suggest.requests.post", return_value=MagicMock(text=reply)):
            assert client.suggest_project_categories("Build the new web shop") == ["Diseño", "Backend"]
        with patch("agenda.suggest.requests.post", side_effect=requests.ConnectionError("down")):
            assert client.suggest_project_categories("Build the new web shop") is None


@pytest.mark.parametrize("reply", ["nope", '{"categories": "Backend"}', "[]"])
def test_parse_category_list_unusable(reply):
    assert parse_category_list(reply) == []

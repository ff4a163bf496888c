"""Tests for extracting tool requests from model text."""

import re

import pytest

from aulaai.tools.aula import AULA_RULES
from aulaai.tools.research import RESEARCH_RULES
from aulaai.tools.tool_call_parser import (
    ResponseParser,
    ToolRule,
)

aula_parser = ResponseParser(AULA_RULES)
research_parser = ResponseParser(RESEARCH_RULES)


def test_no_markers_yields_nothing() -> None:
    """Plain prose is a final answer."""

    assert aula_parser.parse("Emma has a calm week ahead.") == []
    assert research_parser.parse("The weather is sunny.") == []


def test_calendar_defaults_to_fourteen_days() -> None:
    """A bare fetch_calendar marker falls back to the documented default."""

    [request] = aula_parser.parse("Let me call fetch_calendar now.")
    assert request.name == "fetch_calendar"
    assert request.parameters == {"days": 14}
    assert request.description == "Fetch calendar for next 14 days"


def test_calendar_uses_explicit_days() -> None:
    """An integer after the marker is the day count."""

    [request] = aula_parser.parse("I'll run fetch_calendar for the next 30 days.")
    assert request.parameters == {"days": 30}
    assert request.description == "Fetch calendar for next 30 days"


def test_calendar_integer_must_be_on_marker_line() -> None:
    """Numbers on later lines are not mistaken for the day count."""

    [request] = aula_parser.parse("fetch_calendar\nThere are 3 children.")
    assert request.parameters == {"days": 14}


def test_multiple_markers_in_rule_order() -> None:
    """All distinct markers are returned together, in rule order."""

    text = 'fetch_calendar 7 after set_active_child("Emma"), and fetch_messages too'
    requests = aula_parser.parse(text)
    assert [r.name for r in requests] == ["set_active_child", "fetch_messages", "fetch_calendar"]
    assert requests[0].parameters == {"name": "Emma"}
    assert requests[0].description == "Set active child to: Emma"
    assert requests[2].parameters == {"days": 7}


def test_required_argument_missing_does_not_fire() -> None:
    """Rules without defaults stay silent when their argument is absent."""

    assert aula_parser.parse("set_active_child please") == []
    assert research_parser.parse("I should fetch_url the page") == []
    assert research_parser.parse("google_search something") == []


def test_arguments_must_be_on_marker_line() -> None:
    """Apostrophes and quotes in later prose are not taken as arguments."""

    text = "First I will call set_active_child.\nThen I'll look at Emma's calendar."
    assert aula_parser.parse(text) == []
    assert research_parser.parse("I may fetch_url later.\nIt's the 'url' of the school.") == []
    assert research_parser.parse('google_search\nquery: "skolestart"') == []


def test_google_search_query_and_number() -> None:
    """Search requests carry the quoted query and the query number."""

    [request] = research_parser.parse('google_search query: "X" query_number: 1')
    assert request.name == "google_search"
    assert request.parameters == {"query": "X", "query_number": 1}
    assert request.description == "Search for: X"


def test_google_search_number_defaults_and_case() -> None:
    """query_number defaults to 1 and the marker is case-insensitive."""

    [request] = research_parser.parse('Google_Search {"query": "skolestart 2025"}')
    assert request.parameters == {"query": "skolestart 2025", "query_number": 1}


def test_fetch_url_and_search_together() -> None:
    """One response may request both research tools."""

    text = "google_search query: 'aula login' query_number: 2\nfetch_url url: 'https://aula.dk'"
    requests = research_parser.parse(text)
    assert [r.name for r in requests] == ["google_search", "fetch_url"]
    assert requests[0].parameters["query_number"] == 2
    assert requests[1].parameters == {"url": "https://aula.dk"}


def test_parsing_is_deterministic() -> None:
    """Same input, same ordered output."""

    text = 'fetch_basic_data, fetch_daily_overview and set_active_child "Karl" then fetch_calendar'
    assert aula_parser.parse(text) == aula_parser.parse(text)
    assert [r.name for r in aula_parser.parse(text)] == [
        "set_active_child",
        "fetch_basic_data",
        "fetch_daily_overview",
        "fetch_calendar",
    ]


def test_named_groups_are_default_conversion() -> None:
    """Without a converter, named groups become the parameters."""

    rule = ToolRule(
        name="lookup", describe="Look up {term}", pattern=re.compile(r"lookup (?P<term>\w+)")
    )
    [request] = ResponseParser([rule]).parse("lookup aula")
    assert request.parameters == {"term": "aula"}


def test_duplicate_rules_rejected() -> None:
    """A parser cannot hold two rules for the same tool."""

    with pytest.raises(ValueError):
        ResponseParser([ToolRule("a", "a"), ToolRule("a", "b")])

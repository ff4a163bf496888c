"""
Best-effort extraction of tool requests from free-form model text.

The agents do not use a function-calling protocol.  Their system prompts list the tools by name and
the model announces a tool in-line, e.g. ``fetch_calendar for the next 30 days`` or
``google_search query: "skolestart 2025" query_number: 1``.  Each tool has one
:class:`ToolRule`: the tool name is the marker, and an optional regex pulls the arguments out.

Parsing is pure and deterministic: the same text always yields the same ordered list of
:class:`~aulaai.core.schema.ToolRequest`, at most one per rule, in rule order.
"""

import re
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Sequence,
)

from aulaai.core.schema import ToolRequest

Converter = Callable[["re.Match[str]"], Dict[str, Any]]


@dataclass(frozen=True)
class ToolRule:
    """
    Recognition rule for one tool.

    Attributes
    ----------
    name:
        Tool name; also the marker that must appear in the text.
    describe:
        ``str.format`` template for the request description, filled from the parameters.
    pattern:
        Optional argument pattern.  When given, the first match is handed to *convert*.
    convert:
        Builds the parameter mapping from a pattern match.  Defaults to the named groups.
    defaults:
        Parameters used when the marker is present but *pattern* does not match.  ``None`` means
        the rule does not fire in that case.
    """

    name: str
    describe: str
    pattern: "re.Pattern[str] | None" = None
    convert: Converter | None = None
    defaults: Mapping[str, Any] | None = None

    def match(self, text: str) -> ToolRequest | None:
        # Argument patterns start with the marker themselves
        params: Dict[str, Any]
        if self.pattern is not None:
            found = self.pattern.search(text)
            if found is not None:
                params = self.convert(found) if self.convert else found.groupdict()
            elif self.defaults is not None and self.name in text:
                params = dict(self.defaults)
            else:
                return None
        elif self.name in text:
            params = {}
        else:
            return None

        return ToolRequest(
            name=self.name, parameters=params, description=self.describe.format(**params)
        )


class ResponseParser:
    """Applies a fixed set of :class:`ToolRule` to model output."""

    def __init__(self, rules: Sequence[ToolRule]) -> None:
        names = [rule.name for rule in rules]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate tool rules: {names}")
        self.rules = tuple(rules)

    def parse(self, text: str) -> List[ToolRequest]:
        """Return every tool request found in *text* (possibly none)."""
        requests = []
        for rule in self.rules:
            request = rule.match(text)
            if request is not None:
                requests.append(request)
        return requests

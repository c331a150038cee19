"""
Agents, subjects and the links discovered from their feeds.
"""

import re
from dataclasses import dataclass, field
from urllib.parse import quote_plus


@dataclass(frozen=True)
class Agent:
    """
    A named feed endpoint.

    `base_url` may contain a `{query}` placeholder. Without one, the escaped
    query is appended as the `q` parameter.
    """

    name: str
    base_url: str

    def resolve(self, query: str) -> str:
        escaped = quote_plus(query)
        if "{query}" in self.base_url:
            return self.base_url.replace("{query}", escaped)
        separator = "&" if "?" in self.base_url else "?"
        return f"{self.base_url}{separator}q={escaped}"


@dataclass(frozen=True)
class Subject:
    """A feed query against an agent plus an optional title filter."""

    name: str
    agent: Agent
    query: str
    pattern: str | None = None
    _regex: re.Pattern | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.pattern:
            object.__setattr__(self, "_regex", re.compile(self.pattern, re.IGNORECASE))

    @property
    def url(self) -> str:
        return self.agent.resolve(self.query)

    def matches(self, title: str) -> bool:
        """Accepts every title when no pattern is configured."""
        if self._regex is None:
            return True
        return self._regex.search(title) is not None


@dataclass(frozen=True)
class DiscoveredLink:
    """A feed item selected for download during one scan."""

    name: str
    url: str

"""Subscription requests (``REQ``) and the filters they carry."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterable

__all__ = [
    "SubscriptionParseError",
    "ReqFilter",
    "Subscription",
    "parse_filter",
    "parse_subscription",
    "loads_subscription",
]

_U64_MAX = 2**64 - 1


class SubscriptionParseError(ValueError):
    """Raised when a subscription request or filter is malformed."""


def _as_u64(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if 0 <= value <= _U64_MAX:
        return value
    return None


def _as_u64_list(value: Any) -> list[int] | None:
    if not isinstance(value, list):
        return None
    result = []
    for item in value:
        number = _as_u64(item)
        if number is None:
            return None
        result.append(number)
    return result


def _as_str_list(value: Any) -> list[str] | None:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        return None
    return list(value)


def _prefix_match(prefixes: Iterable[str], target: str) -> bool:
    return any(target.startswith(prefix) for prefix in prefixes)


def _tag_search_char(key: str) -> str | None:
    """Return the tag letter of a ``#x`` filter key, if it is a single character."""
    name = key[1:]
    return name if len(name) == 1 else None


def _event_has_tag_value(event: Any, name: str, values: frozenset[str]) -> bool:
    for tag in getattr(event, "tags", None) or ():
        if len(tag) >= 2 and tag[0] == name and tag[1] in values:
            return True
    return False


@dataclass
class ReqFilter:
    """One filter of a subscription; ``None`` fields are not used for matching."""

    ids: list[str] | None = None
    kinds: list[int] | None = None
    since: int | None = None
    until: int | None = None
    authors: list[str] | None = None
    limit: int | None = None
    tags: dict[str, frozenset[str]] | None = None
    force_no_match: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the filter as a JSON-ready mapping."""
        out: dict[str, Any] = {}
        if self.ids is not None:
            out["ids"] = list(self.ids)
        if self.kinds is not None:
            out["kinds"] = list(self.kinds)
        if self.until is not None:
            out["until"] = self.until
        if self.since is not None:
            out["since"] = self.since
        if self.limit is not None:
            out["limit"] = self.limit
        if self.authors is not None:
            out["authors"] = list(self.authors)
        for name, values in (self.tags or {}).items():
            out[f"#{name}"] = sorted(values)
        return out

    def _ids_match(self, event: Any) -> bool:
        return self.ids is None or _prefix_match(self.ids, event.id)

    def _authors_match(self, event: Any) -> bool:
        return self.authors is None or _prefix_match(self.authors, event.pubkey)

    def _delegated_authors_match(self, event: Any) -> bool:
        delegated = getattr(event, "delegated_by", None)
        if delegated is None:
            return False
        return self.authors is None or _prefix_match(self.authors, delegated)

    def _tag_match(self, event: Any) -> bool:
        return all(
            _event_has_tag_value(event, name, values)
            for name, values in (self.tags or {}).items()
        )

    def interested_in_event(self, event: Any) -> bool:
        """Whether every populated field of this filter matches the event."""
        return (
            self._ids_match(event)
            and (self.since is None or event.created_at >= self.since)
            and (self.until is None or event.created_at <= self.until)
            and (self.kinds is None or event.kind in self.kinds)
            and (self._authors_match(event) or self._delegated_authors_match(event))
            and self._tag_match(event)
            and not self.force_no_match
        )


@dataclass
class Subscription:
    """A subscription identifier and its request filters."""

    id: str
    filters: list[ReqFilter] = field(default_factory=list)

    def needs_historical_events(self) -> bool:
        """False only when every filter has ``limit`` 0."""
        return any(f.limit != 0 for f in self.filters)

    def interested_in_event(self, event: Any) -> bool:
        """Whether any filter matches the event."""
        return any(f.interested_in_event(event) for f in self.filters)


def parse_filter(value: Any) -> ReqFilter:
    """Build a :class:`ReqFilter` from a decoded JSON object."""
    if not isinstance(value, dict):
        raise SubscriptionParseError("reqfilter is not an object")
    rf = ReqFilter()
    tags: dict[str, frozenset[str]] | None = None
    for key, val in value.items():
        if key == "ids":
            ids = _as_str_list(val)
            if ids is not None and "" in ids:
                raise SubscriptionParseError("prefix matches must not be empty strings")
            rf.ids = ids
        elif key == "kinds":
            rf.kinds = _as_u64_list(val)
        elif key == "since":
            rf.since = _as_u64(val)
        elif key == "until":
            rf.until = _as_u64(val)
        elif key == "limit":
            rf.limit = _as_u64(val)
        elif key == "authors":
            authors = _as_str_list(val)
            if authors is not None and "" in authors:
                raise SubscriptionParseError("prefix matches must not be empty strings")
            rf.authors = authors
        elif key.startswith("#") and len(key) > 1 and isinstance(val, list):
            name = _tag_search_char(key)
            if name is None:
                # multi-character tag searches cannot be represented
                rf.force_no_match = True
                continue
            if tags is None:
                tags = {}
            values = _as_str_list(val)
            if values is not None:
                tags[name] = frozenset(values)
    rf.tags = tags
    return rf


def parse_subscription(value: Any) -> Subscription:
    """Build a :class:`Subscription` from a decoded ``["REQ", id, filter...]`` array."""
    if not isinstance(value, list):
        raise SubscriptionParseError("not array")
    if len(value) < 3:
        raise SubscriptionParseError("not enough fields")
    command, sub_id, *raw_filters = value
    if not isinstance(command, str):
        raise SubscriptionParseError("first element of request was not a string")
    if command != "REQ":
        raise SubscriptionParseError("missing REQ command")
    if not isinstance(sub_id, str):
        raise SubscriptionParseError("missing subscription id")
    filters: list[ReqFilter] = []
    for raw in raw_filters:
        try:
            parsed = parse_filter(raw)
        except SubscriptionParseError as exc:
            raise SubscriptionParseError("could not parse filter") from exc
        # only consecutive duplicates are collapsed
        if not filters or filters[-1] != parsed:
            filters.append(parsed)
    return Subscription(id=sub_id, filters=filters)


def loads_subscription(text: str) -> Subscription:
    """Parse a subscription request from JSON text."""
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SubscriptionParseError(f"invalid JSON: {exc}") from exc
    return parse_subscription(value)
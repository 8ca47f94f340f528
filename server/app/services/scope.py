"""
Scope (care group) selection for inbound calls.

A call is bound to exactly one care group before its ``start`` event is
processed. Callers reach the bridge in one of two shapes:

- ``DirectScope``: the group id is already known (care recipient calling, or a
  member of a single group).
- ``MultiScope``: a member belongs to several groups. The designated default is
  used when it is one of the candidates, otherwise the first candidate. No
  spoken selection happens mid-call.

Parameters come from two places: the websocket URL query string and the
``customParameters`` bag of the Twilio ``start`` event. In-band values win.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class CallerKind(str, Enum):
    """Who is on the phone. Only changes the assistant's instructions."""

    RECIPIENT = "recipient"
    MEMBER = "member"

    @classmethod
    def parse(cls, value: Optional[str]) -> "CallerKind":
        if value and value.strip().lower() in ("member", "user"):
            return cls.MEMBER
        return cls.RECIPIENT


@dataclass(frozen=True)
class DirectScope:
    scope_id: str

    def resolve(self) -> Optional[str]:
        return self.scope_id or None


@dataclass(frozen=True)
class MultiScope:
    candidates: Tuple[str, ...]
    default_hint: Optional[str] = None

    def resolve(self) -> Optional[str]:
        if self.default_hint and (not self.candidates or self.default_hint in self.candidates):
            return self.default_hint
        if self.default_hint:
            logger.warning(
                f"Default scope {self.default_hint} is not among caller's groups, using first"
            )
        return self.candidates[0] if self.candidates else None


ScopeSelection = Union[DirectScope, MultiScope]


@dataclass(frozen=True)
class CallerParameters:
    """Caller-supplied routing parameters after merging URL and in-band values."""

    selection: Optional[ScopeSelection]
    caller_id: Optional[str]
    caller_kind: CallerKind

    @property
    def scope_id(self) -> Optional[str]:
        return self.selection.resolve() if self.selection else None


def _strings(params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    return {key: str(value) for key, value in (params or {}).items() if value is not None}


def _split_ids(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _first(key: str, *sources: Mapping[str, str]) -> Optional[str]:
    for source in sources:
        value = source.get(key)
        if value:
            return value
    return None


def selection_from_params(*sources: Mapping[str, str]) -> Optional[ScopeSelection]:
    """Build a scope selection; the first source naming any scope wins."""
    for source in sources:
        scope_id = source.get("scopeId")
        if scope_id:
            return DirectScope(scope_id)

        candidates = _split_ids(source.get("scopeIds"))
        default_hint = source.get("defaultScopeId") or None
        if candidates or default_hint:
            return MultiScope(candidates=candidates, default_hint=default_hint)
    return None


def merge_caller_parameters(
    custom_parameters: Optional[Mapping[str, str]],
    query_params: Optional[Mapping[str, str]],
) -> CallerParameters:
    """Merge in-band ``customParameters`` over URL query parameters."""
    in_band = _strings(custom_parameters)
    url = _strings(query_params)
    return CallerParameters(
        selection=selection_from_params(in_band, url),
        caller_id=_first("callerId", in_band, url),
        caller_kind=CallerKind.parse(_first("callerKind", in_band, url)),
    )


"""
Events emitted by autopass modules.

Each module keeps an EventLog of what it emitted, in order. Events are
immutable records; the log is append-only.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Type, TypeVar

from .keys import PublicKey


@dataclass(frozen=True)
class Event:
    """Base class for module events."""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for name, value in list(data.items()):
            field_value = getattr(self, name)
            if isinstance(field_value, PublicKey):
                data[name] = field_value.to_dict()
        data["event"] = type(self).__name__
        return data


@dataclass(frozen=True)
class CredentialChanged(Event):
    """Binding for (account, namespace) replaced. None means unbound."""
    account: str
    namespace_id: int
    old_key: Optional[PublicKey]
    new_key: Optional[PublicKey]


@dataclass(frozen=True)
class PlanCreated(Event):
    plan_id: int
    token_in: str
    token_out: str
    amount: int
    interval: int


@dataclass(frozen=True)
class PlanExecuted(Event):
    plan_id: int
    endpoint: str
    executed_at: int


@dataclass(frozen=True)
class PlanCancelled(Event):
    plan_id: int


@dataclass(frozen=True)
class DexWhitelistUpdated(Event):
    endpoint: str
    allowed: bool


E = TypeVar("E", bound=Event)


class EventLog:
    """Append-only, in-order record of emitted events."""

    def __init__(self):
        self._events: List[Event] = []

    def emit(self, event: Event) -> None:
        self._events.append(event)

    def all(self) -> List[Event]:
        return list(self._events)

    def of_type(self, event_type: Type[E]) -> List[E]:
        return [e for e in self._events if isinstance(e, event_type)]

    def last(self) -> Optional[Event]:
        return self._events[-1] if self._events else None

    def __len__(self) -> int:
        return len(self._events)

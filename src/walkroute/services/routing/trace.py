"""Structured record of the planner's decisions."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, List, Optional


@dataclass(slots=True)
class TraceEvent:
    kind: str
    message: str
    minute: Optional[float] = None
    appointment_ids: List[str] = field(default_factory=list)
    detail: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class PlanTrace:
    """Ordered trace returned alongside a route.

    The planner only appends here; callers decide whether and where to log it.
    """

    events: List[TraceEvent] = field(default_factory=list)

    def record(
        self,
        kind: str,
        message: str,
        *,
        minute: Optional[float] = None,
        appointment_ids: Optional[List[str]] = None,
        **detail: Any,
    ) -> TraceEvent:
        event = TraceEvent(
            kind=kind,
            message=message,
            minute=minute,
            appointment_ids=list(appointment_ids or []),
            detail=detail,
        )
        self.events.append(event)
        return event

    def of_kind(self, kind: str) -> list[TraceEvent]:
        return [event for event in self.events if event.kind == kind]

    def to_list(self) -> list[dict]:
        return [asdict(event) for event in self.events]

    def replay(self, logger: logging.Logger, level: int = logging.DEBUG) -> None:
        if not logger.isEnabledFor(level):
            return
        for event in self.events:
            if event.minute is None:
                logger.log(level, "[%s] %s", event.kind, event.message)
            else:
                logger.log(level, "[%s @ %.1f] %s", event.kind, event.minute, event.message)

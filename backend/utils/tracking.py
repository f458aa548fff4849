from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from models.order import OrderEvent, OrderRecord
from utils.order_lifecycle import BUYER_STEPS, DETAILED_STEPS, STATE_GRAPH, STOPPED_STATUSES


class TrackingView(str, Enum):
    BUYER = "buyer"
    DETAILED = "detailed"


@dataclass(frozen=True)
class TimelineStep:
    step: str
    reached: bool
    occurred_at: Optional[datetime] = None
    notes: Optional[str] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class TrackingProjection:
    order_id: str
    status: str
    steps: Tuple[str, ...]
    current_step_index: Optional[int]
    percent_complete: Optional[float]
    stopped: bool = False
    stopped_status: Optional[str] = None
    last_reached_index: Optional[int] = None
    timeline: List[TimelineStep] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "status": self.status,
            "steps": list(self.steps),
            "current_step_index": self.current_step_index,
            "percent_complete": self.percent_complete,
            "stopped": self.stopped,
            "stopped_status": self.stopped_status,
            "last_reached_index": self.last_reached_index,
            "timeline": [
                {
                    "step": t.step,
                    "reached": t.reached,
                    "occurred_at": t.occurred_at.isoformat() if t.occurred_at else None,
                    "notes": t.notes,
                    "location": t.location,
                }
                for t in self.timeline
            ],
        }


def _step_of(status, view: TrackingView) -> Optional[str]:
    rule = STATE_GRAPH[status]
    return rule.buyer_step if view == TrackingView.BUYER else rule.detailed_step


def _furthest_index(history: Tuple[OrderEvent, ...], steps, view) -> Optional[int]:
    furthest = None
    for event in history:
        step = _step_of(event.status, view)
        if step is None:
            continue
        index = steps.index(step)
        if furthest is None or index > furthest:
            furthest = index
    return furthest


def project(order: OrderRecord, view: TrackingView = TrackingView.DETAILED) -> TrackingProjection:
    """
    Map an order onto its progress bar. Pure: reads `order` and its
    already-loaded history only.
    """
    view = TrackingView(view)
    steps = BUYER_STEPS if view == TrackingView.BUYER else DETAILED_STEPS

    # latest event per step wins (qc and finishing share a step)
    latest_by_step = {}
    for event in order.history:
        step = _step_of(event.status, view)
        if step is not None:
            latest_by_step[step] = event

    if order.status in STOPPED_STATUSES:
        reached_until = _furthest_index(order.history, steps, view)
        current_index = None
        percent = None
    else:
        current_index = steps.index(_step_of(order.status, view))
        reached_until = current_index
        percent = (current_index + 1) / len(steps)

    timeline = []
    for index, step in enumerate(steps):
        reached = reached_until is not None and index <= reached_until
        event = latest_by_step.get(step) if reached else None
        timeline.append(TimelineStep(
            step=step,
            reached=reached,
            occurred_at=event.occurred_at if event else None,
            notes=event.notes if event else None,
            location=event.location if event else None,
        ))

    stopped = order.status in STOPPED_STATUSES
    return TrackingProjection(
        order_id=order.id,
        status=order.status.value,
        steps=steps,
        current_step_index=current_index,
        percent_complete=percent,
        stopped=stopped,
        stopped_status=order.status.value if stopped else None,
        last_reached_index=reached_until if stopped else None,
        timeline=timeline,
    )

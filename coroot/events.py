"""Application events (rollouts, switchovers, instance up/down) and chart annotations."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import IntEnum

from .series import NAN, TimeSeries

DEPLOYMENT = "Deployment"
CLUSTER_ROLE_PRIMARY = 1.0


class EventType(IntEnum):
    """Kinds of application events, in the order annotations list them."""

    SWITCHOVER = 0
    ROLLOUT = 1
    INSTANCE_DOWN = 2
    INSTANCE_UP = 3


@dataclass
class Event:
    """Something that happened to an application; a zero `end` means it has not ended."""

    start: int
    type: EventType
    end: int = 0
    details: str = ""

    def __str__(self) -> str:
        start = str(self.start) if self.start else ""
        end = str(self.end) if self.end else ""
        return f"{start}-{end}"


@dataclass
class Annotation:
    """Events close enough in time to be shown as one chart annotation."""

    start: int
    end: int
    message: str
    icon: str
    events: list[Event] = field(default_factory=list)


_MESSAGES_AND_ICONS = {
    EventType.ROLLOUT: (lambda e: "application rollout", "mdi-swap-horizontal-circle-outline"),
    EventType.SWITCHOVER: (lambda e: "switchover " + e.details, "mdi-database-sync-outline"),
    EventType.INSTANCE_UP: (lambda e: e.details + " is up", "mdi-alert-octagon-outline"),
    EventType.INSTANCE_DOWN: (lambda e: e.details + " is down", "mdi-alert-octagon-outline"),
}


def _nan_sum(t: int, acc: float, v: float) -> float:
    if math.isnan(acc):
        return v
    if math.isnan(v):
        return acc
    return acc + v


def _merge(acc: TimeSeries | None, series: TimeSeries) -> TimeSeries:
    if acc is None:
        return series.map(lambda t, v: v)
    return acc.combine(series, _nan_sum)


def _add_replica_set_bit(t: int, acc: float, v: float) -> float:
    if math.isnan(v) or v == 0:
        return acc
    return float(int(acc) | 1 << int(v - 1))


def calc_rollouts(
    kind: str, pods: Iterable[tuple[str, TimeSeries | None]]
) -> list[Event]:
    """Find rollouts of a deployment from the life spans of its pods.

    `pods` holds (replica set, life span) pairs. A rollout is a period during
    which more than one replica set is alive, or a switch from one replica set
    to another.
    """
    if kind != DEPLOYMENT:
        return []
    by_replica_set: dict[str, TimeSeries] = {}
    for replica_set, life_span in pods:
        if not replica_set or life_span is None:
            continue
        by_replica_set[replica_set] = _merge(by_replica_set.get(replica_set), life_span)
    if not by_replica_set:
        return []

    numbered = [
        series.map(lambda t, v, n=float(num): n if v > 0 else 0.0)
        for num, series in enumerate(by_replica_set.values(), 1)
    ]
    active = numbered[0].map(lambda t, v: 0.0)
    for series in numbered:
        active = active.combine(series, _add_replica_set_bit)

    events: list[Event] = []
    event: Event | None = None
    prev = 0
    for i, (t, v) in enumerate(active.points(), 1):
        bits = int(v)
        count = bin(bits).count("1")
        if count == 0:
            continue
        if count == 1:
            curr = (bits & -bits).bit_length()
            if i == 1:
                prev = curr
                continue
            if prev == curr:
                continue
            prev = curr
            if event is None:
                event = Event(start=t, type=EventType.ROLLOUT)
            event.end = t
            events.append(event)
            event = None
        elif event is None:
            event = Event(start=t, type=EventType.ROLLOUT)
    if event is not None:
        events.append(event)
    return events


def calc_up_down_events(
    instances: Iterable[tuple[str, TimeSeries | None]]
) -> list[Event]:
    """Find the moments instances went down or came back up.

    `instances` holds (instance name, up) pairs, where up is 1 while the
    instance is available; instances without an up series are skipped.
    """
    events: list[Event] = []
    for name, up in instances:
        if up is None:
            continue
        status = ""
        for t, v in up.points():
            if status == "up" and v != 1:
                events.append(Event(start=t, type=EventType.INSTANCE_DOWN, details=name))
            elif status == "down" and v == 1:
                events.append(Event(start=t, type=EventType.INSTANCE_UP, details=name))
            status = "up" if v == 1 else "down"
    return events


def _single_primary(t: int, acc: float, v: float) -> float:
    if acc < 0:
        return -1.0
    if acc >= 0 and v >= 0:
        return -1.0
    if v >= 0:
        return v
    return acc


def calc_cluster_switchovers(
    roles: Sequence[tuple[str, TimeSeries | None]]
) -> list[Event]:
    """Find changes of the primary instance of a cluster.

    `roles` holds (instance name, cluster role) pairs in instance order; a role
    value of CLUSTER_ROLE_PRIMARY marks the primary.
    """
    names: list[str] = []
    inputs: list[TimeSeries] = []
    for num, (name, role) in enumerate(roles):
        names.append(name)
        if role is None:
            continue
        inputs.append(
            role.map(lambda t, v, n=float(num): n if v == CLUSTER_ROLE_PRIMARY else NAN)
        )
    if not inputs:
        return []
    primary = inputs[0]
    for series in inputs[1:]:
        primary = primary.combine(series, _single_primary)
    if primary.is_empty():
        return []

    events: list[Event] = []
    event: Event | None = None
    prev = -1.0
    for t, curr in primary.points():
        if prev == -1:
            if not math.isnan(curr):
                prev = curr
            continue
        valid = not math.isnan(curr) and curr >= 0
        if curr != prev and event is None:
            event = Event(
                start=t,
                type=EventType.SWITCHOVER,
                details=names[int(prev)] + " &rarr; ",
            )
        if curr != prev and event is not None and valid:
            event.end = t
            event.details += names[int(curr)]
            events.append(event)
            event = None
        if valid:
            prev = curr
    return events


def calc_app_events(
    kind: str,
    pods: Iterable[tuple[str, TimeSeries | None]],
    instances: Iterable[tuple[str, TimeSeries | None]],
    roles: Sequence[tuple[str, TimeSeries | None]],
) -> list[Event]:
    """Return all events of an application ordered by start time, then details."""
    events = calc_rollouts(kind, pods)
    events += calc_cluster_switchovers(roles)
    events += calc_up_down_events(instances)
    events.sort(key=lambda e: (e.start, e.details))
    return events


def annotate(events: Iterable[Event], step: int) -> list[Annotation]:
    """Group events starting within three steps of a group's start into annotations."""
    groups: list[tuple[int, int, list[Event]]] = []
    for e in events:
        if not groups or e.start - groups[-1][0] > 3 * step:
            groups.append((e.start, e.end, [e]))
            continue
        start, _, group = groups[-1]
        group.append(e)
        groups[-1] = (start, e.end, group)

    annotations = []
    for start, end, group in groups:
        group.sort(key=lambda e: e.type)
        messages = []
        icon = ""
        for e in group:
            describe, event_icon = _MESSAGES_AND_ICONS.get(e.type, (None, ""))
            if describe is not None:
                messages.append(describe(e))
            if not icon:
                icon = event_icon
        annotations.append(
            Annotation(start=start, end=end, message="<br>".join(messages), icon=icon, events=group)
        )
    return annotations
from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime

from app.helpdesk.entities import Ticket, TicketPriority, TicketStatus


@dataclass(frozen=True)
class ReportFilters:
    start_date: date | None = None
    end_date: date | None = None
    technician_id: str = ""
    client_id: str = ""

    @classmethod
    def from_args(cls, args) -> "ReportFilters":
        return cls(
            start_date=parse_date(args.get("start_date")),
            end_date=parse_date(args.get("end_date")),
            technician_id=(args.get("technician_id") or "").strip(),
            client_id=(args.get("client_id") or "").strip(),
        )


@dataclass(frozen=True)
class ReportSummary:
    total: int
    average_completion_hours: int | None
    most_common_status: TicketStatus | None
    status_counts: dict[TicketStatus, int] = field(default_factory=dict)


@dataclass(frozen=True)
class DashboardStats:
    total: int
    by_status: dict[TicketStatus, int]
    by_priority: dict[TicketPriority, int]


def parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def filter_report_tickets(tickets: Iterable[Ticket], filters: ReportFilters) -> list[Ticket]:
    """Date bounds compare calendar days, so the end day is included in full."""
    out = []
    for t in tickets:
        day = t.created_at.date() if t.created_at else None
        if filters.start_date and (day is None or day < filters.start_date):
            continue
        if filters.end_date and (day is None or day > filters.end_date):
            continue
        if filters.technician_id and t.technician_id != filters.technician_id:
            continue
        if filters.client_id and t.client_id != filters.client_id:
            continue
        out.append(t)
    return out


def summarize(tickets: Iterable[Ticket]) -> ReportSummary:
    items = list(tickets)
    counts = Counter(t.status for t in items)

    hours = [
        (t.updated_at - t.created_at).total_seconds() / 3600
        for t in items
        if t.status is TicketStatus.CLOSED and t.created_at and t.updated_at
    ]
    # halves round up, not to even
    average = math.floor(sum(hours) / len(hours) + 0.5) if hours else None
    most_common = counts.most_common(1)[0][0] if counts else None

    return ReportSummary(
        total=len(items),
        average_completion_hours=average,
        most_common_status=most_common,
        status_counts={s: counts.get(s, 0) for s in TicketStatus},
    )


def dashboard_stats(tickets: Iterable[Ticket]) -> DashboardStats:
    items = list(tickets)
    statuses = Counter(t.status for t in items)
    priorities = Counter(t.priority for t in items)
    return DashboardStats(
        total=len(items),
        by_status={s: statuses.get(s, 0) for s in TicketStatus},
        by_priority={p: priorities.get(p, 0) for p in TicketPriority},
    )

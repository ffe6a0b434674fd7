"""
Pipeline overview, summary report and overdue list.

Overview and summary work on denormalized client dicts (crud.client_to_dict);
amounts are converted to INR with the country exchange table.
"""
import math
from collections import OrderedDict
from datetime import datetime
from typing import Dict, Iterable, List, Sequence

from salescrm.services.countries import convert_to_inr, format_currency
from salescrm.services.reference_data import (
    ACTIVE_STAGES, PRIORITIES, Stage, Status, is_terminal, stage_order,
)
from salescrm.services.timeline import DurationStatus, current_stage_status

DAYS_BUCKETS = (
    ("0-7 days", 0, 7),
    ("8-14 days", 8, 14),
    ("15-21 days", 15, 21),
    ("22-30 days", 22, 30),
    ("30+ days", 31, math.inf),
)
ATTENTION_WINDOW_DAYS = 2
STALLED_AFTER_DAYS = 21
LEAD_QUALIFY_AFTER_DAYS = 7


def _floor_days(start: datetime, end: datetime) -> int:
    return math.floor((end - start).total_seconds() / 86400)


def days_in_pipeline(client: dict, now: datetime) -> int:
    start = client.get("pipeline_start_date") or client["created_at"]
    return _floor_days(start, now)


def _inr(client: dict) -> float:
    return convert_to_inr(client["value"], client["country"])


def _brief(client: dict, now: datetime) -> dict:
    return {
        "id": client["id"],
        "companyName": client["company_name"],
        "stage": client["stage"],
        "status": client.get("status"),
        "priority": client["priority"],
        "responsiblePerson": client["responsible_person"],
        "valueINR": _inr(client),
        "valueDisplay": format_currency(client["value"], client["country"]),
        "daysInPipeline": days_in_pipeline(client, now),
        "nextFollowUp": client["next_follow_up"],
    }


def pipeline_overview(clients: Sequence[dict], now: datetime) -> dict:
    won = [c for c in clients if c["stage"] == Stage.WON.value]
    lost = [c for c in clients if c["stage"] == Stage.LOST.value]
    active = [c for c in clients if not is_terminal(c["stage"])]
    in_negotiation = [c for c in clients if c.get("status") == Status.IN_NEGOTIATION.value]

    total_inr = sum(_inr(c) for c in clients)
    active_inr = sum(_inr(c) for c in active)
    won_inr = sum(_inr(c) for c in won)
    closed_count = len(won) + len(lost)

    active_days = [days_in_pipeline(c, now) for c in active]
    avg_cycle = round(sum(active_days) / len(active_days)) if active_days else 0

    stage_rows: Dict[str, dict] = {}
    for c in active:
        row = stage_rows.setdefault(c["stage"], {"stage": c["stage"], "count": 0, "value": 0.0})
        row["count"] += 1
        row["value"] += _inr(c)

    priority_rows: Dict[str, dict] = {}
    for c in active:
        row = priority_rows.setdefault(c["priority"], {"name": c["priority"], "count": 0, "amount": 0.0})
        row["count"] += 1
        row["amount"] += _inr(c)

    country_rows: Dict[str, dict] = {}
    for c in clients:
        row = country_rows.setdefault(c["country"], {"country": c["country"], "deals": 0, "value": 0.0})
        row["deals"] += 1
        row["value"] += _inr(c)

    person_rows: Dict[str, dict] = {}
    for c in clients:
        person = c.get("responsible_person") or "Unassigned"
        row = person_rows.setdefault(person, {"name": person, "deals": 0, "value": 0.0, "won": 0})
        row["deals"] += 1
        row["value"] += _inr(c)
        if c["stage"] == Stage.WON.value:
            row["won"] += 1

    buckets = OrderedDict((label, 0) for label, _, _ in DAYS_BUCKETS)
    for days in active_days:
        for label, low, high in DAYS_BUCKETS:
            if low <= days <= high:
                buckets[label] += 1
                break

    needing_attention = [
        c for c in active
        if c["priority"] == "High" and _floor_days(now, c["next_follow_up"]) <= ATTENTION_WINDOW_DAYS
    ]
    stalled = [
        c for c in active
        if days_in_pipeline(c, now) > STALLED_AFTER_DAYS and c.get("status") == Status.IN_NEGOTIATION.value
    ]
    ready_to_qualify = [
        c for c in clients
        if c["stage"] == Stage.LEAD.value and days_in_pipeline(c, now) >= LEAD_QUALIFY_AFTER_DAYS
    ]

    return {
        "totals": {
            "clients": len(clients),
            "won": len(won),
            "lost": len(lost),
            "closed": closed_count,
            "inNegotiation": len(in_negotiation),
            "active": len(active),
        },
        "winRate": (len(won) / closed_count * 100) if closed_count else 0,
        "totalPipelineINR": total_inr,
        "activePipelineINR": active_inr,
        "wonValueINR": won_inr,
        "avgDealSizeINR": total_inr / len(clients) if clients else 0,
        "avgWonDealSizeINR": won_inr / len(won) if won else 0,
        "avgCycleTimeDays": avg_cycle,
        "stageBreakdown": sorted(stage_rows.values(), key=lambda r: stage_order(r["stage"])),
        "funnel": [
            {"stage": s, "count": stage_rows[s]["count"]} for s in ACTIVE_STAGES if s in stage_rows
        ],
        "priorityBreakdown": sorted(
            priority_rows.values(),
            key=lambda r: PRIORITIES.index(r["name"]) if r["name"] in PRIORITIES else len(PRIORITIES),
        ),
        "countryBreakdown": sorted(country_rows.values(), key=lambda r: r["value"], reverse=True),
        "personBreakdown": sorted(person_rows.values(), key=lambda r: r["value"], reverse=True),
        "daysInPipeline": [{"range": label, "count": count} for label, count in buckets.items()],
        "highPriorityNeedingAttention": [_brief(c, now) for c in needing_attention],
        "stalledDeals": [_brief(c, now) for c in stalled],
        "leadsReadyForQualification": [_brief(c, now) for c in ready_to_qualify],
    }


def report_summary(clients: Iterable[dict]) -> dict:
    clients = list(clients)
    return {
        "totalClients": len(clients),
        "wonCount": sum(1 for c in clients if c["stage"] == Stage.WON.value),
        "inNegotiationCount": sum(1 for c in clients if c.get("status") == Status.IN_NEGOTIATION.value),
        "proposalRejectedCount": sum(1 for c in clients if c.get("status") == Status.PROPOSAL_REJECTED.value),
        "totalPipelineINR": sum(_inr(c) for c in clients),
    }


def overdue_clients(clients: Sequence, open_entries: Dict[str, object], now: datetime) -> List[dict]:
    """
    Active clients whose current stage is in warning or overdue.
    open_entries: client_id -> open history entry (may be missing).
    Most overdue first.
    """
    out = []
    for client in clients:
        if is_terminal(client.stage):
            continue
        entry = open_entries.get(client.id)
        state = current_stage_status(client, [entry] if entry is not None else [], now)
        if state["status"] == DurationStatus.ON_TRACK.value:
            continue
        out.append({
            "clientId": client.id,
            "companyName": client.company_name,
            "responsiblePerson": client.responsible_person.name if client.responsible_person else "",
            **state,
        })
    out.sort(key=lambda r: (r["status"] != DurationStatus.OVERDUE.value, -r["elapsedDays"]))
    return out

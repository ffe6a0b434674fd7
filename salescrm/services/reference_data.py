"""
Static pipeline reference data: stages, statuses, priorities, sources,
expected stage durations and the stage -> allowed status table.
"""
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Stage(str, Enum):
    """Pipeline stages in pipeline order."""
    LEAD = "Lead"
    QUALIFIED = "Qualified"
    MEETING_SCHEDULED = "Meeting Scheduled"
    DEMO_COMPLETED = "Demo Completed"
    POC = "Proof of Concept (POC)"
    PROPOSAL_SENT = "Proposal Sent"
    VERBAL_COMMITMENT = "Verbal Commitment"
    CONTRACT_REVIEW = "Contract Review"
    WON = "Won"
    LOST = "Lost"


class Status(str, Enum):
    IN_NEGOTIATION = "In Negotiation"
    PROPOSAL_REJECTED = "Proposal Rejected"
    ON_HOLD = "On Hold"
    PENDING_REVIEW = "Pending Review"
    AWAITING_RESPONSE = "Awaiting Response"
    UNDER_EVALUATION = "Under Evaluation"
    BUDGET_APPROVAL_PENDING = "Budget Approval Pending"


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Source(str, Enum):
    WEBSITE = "Website"
    REFERRAL = "Referral"
    LINKEDIN = "LinkedIn"
    COLD_CALL = "Cold Call"
    EMAIL_CAMPAIGN = "Email Campaign"
    EVENT = "Event"
    PARTNER = "Partner"
    OTHER = "Other"


STAGES: List[str] = [s.value for s in Stage]
STATUSES: List[str] = [s.value for s in Status]
PRIORITIES: List[str] = [p.value for p in Priority]
SOURCES: List[str] = [s.value for s in Source]

TERMINAL_STAGES = (Stage.WON.value, Stage.LOST.value)
ACTIVE_STAGES: List[str] = [s for s in STAGES if s not in TERMINAL_STAGES]

DEFAULT_STAGE = Stage.LEAD.value
DEFAULT_PRIORITY = Priority.MEDIUM.value
DEFAULT_SERVICE = "Product Development"
DEFAULT_RESPONSIBLE_PERSON = "Unassigned"
FALLBACK_SOURCE = Source.OTHER.value

DEFAULT_SERVICES: List[str] = [
    "Product Development",
    "CRM",
    "ERP",
    "Mobile Development",
    "Website Creation",
    "Digital Marketing",
    "ITSM",
]

# stage -> (min days, max days, display); max == 0 means "not applicable"
STAGE_EXPECTED_DAYS: Dict[str, Tuple[int, int, str]] = {
    Stage.LEAD.value: (1, 2, "24-48h"),
    Stage.QUALIFIED.value: (2, 3, "2-3d"),
    Stage.MEETING_SCHEDULED.value: (1, 5, "1-5d"),
    Stage.DEMO_COMPLETED.value: (3, 5, "3-5d"),
    Stage.POC.value: (7, 21, "1-3w"),
    Stage.PROPOSAL_SENT.value: (5, 7, "5-7d"),
    Stage.VERBAL_COMMITMENT.value: (3, 5, "3-5d"),
    Stage.CONTRACT_REVIEW.value: (5, 10, "5-10d"),
    Stage.WON.value: (0, 0, "N/A"),
    Stage.LOST.value: (0, 0, "N/A"),
}

_S = Status
STAGE_ALLOWED_STATUSES: Dict[str, List[str]] = {
    Stage.LEAD.value: [_S.ON_HOLD.value, _S.AWAITING_RESPONSE.value],
    Stage.QUALIFIED.value: [
        _S.ON_HOLD.value, _S.AWAITING_RESPONSE.value,
        _S.UNDER_EVALUATION.value, _S.BUDGET_APPROVAL_PENDING.value,
    ],
    Stage.MEETING_SCHEDULED.value: [_S.ON_HOLD.value, _S.AWAITING_RESPONSE.value],
    Stage.DEMO_COMPLETED.value: [
        _S.ON_HOLD.value, _S.AWAITING_RESPONSE.value, _S.UNDER_EVALUATION.value,
    ],
    Stage.POC.value: [_S.ON_HOLD.value, _S.UNDER_EVALUATION.value, _S.PENDING_REVIEW.value],
    Stage.PROPOSAL_SENT.value: [
        _S.IN_NEGOTIATION.value, _S.PROPOSAL_REJECTED.value, _S.ON_HOLD.value,
        _S.AWAITING_RESPONSE.value, _S.PENDING_REVIEW.value,
    ],
    Stage.VERBAL_COMMITMENT.value: [
        _S.IN_NEGOTIATION.value, _S.ON_HOLD.value, _S.BUDGET_APPROVAL_PENDING.value,
    ],
    Stage.CONTRACT_REVIEW.value: [_S.IN_NEGOTIATION.value, _S.ON_HOLD.value, _S.PENDING_REVIEW.value],
    Stage.WON.value: [],
    Stage.LOST.value: [],
}


def is_terminal(stage: str) -> bool:
    return stage in TERMINAL_STAGES


def stage_order(stage: str) -> int:
    """Position in the pipeline; unknown stages sort last."""
    try:
        return STAGES.index(stage)
    except ValueError:
        return len(STAGES)


def allowed_statuses(stage: str) -> List[str]:
    return list(STAGE_ALLOWED_STATUSES.get(stage, []))


def is_status_compatible(stage: str, status: Optional[str]) -> bool:
    """A null status is compatible with every stage."""
    if not status:
        return True
    return status in STAGE_ALLOWED_STATUSES.get(stage, [])


def stage_reference() -> List[dict]:
    """Stages with expected durations and allowed statuses (GET /api/reference/stages)."""
    out = []
    for stage in STAGES:
        min_days, max_days, display = STAGE_EXPECTED_DAYS[stage]
        out.append({
            "stage": stage,
            "terminal": is_terminal(stage),
            "expected": {"min": min_days, "max": max_days, "display": display},
            "allowedStatuses": allowed_statuses(stage),
        })
    return out

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping

from .models.canvas import StepIntent
from .models.lead import LEAD_STATUS_ORDER, LeadStatus, lead_status_rank

LEAD_STATE_LABELS: Mapping[LeadStatus, str] = MappingProxyType(
    {
        LeadStatus.visitor: "Visitor",
        LeadStatus.partial: "Partial",
        LeadStatus.lead: "Lead",
        LeadStatus.booked: "Booked",
    }
)

LEAD_STATE_BADGE_COLORS: Mapping[LeadStatus, str] = MappingProxyType(
    {
        LeadStatus.visitor: "bg-slate-500/10 text-slate-600 border-slate-500/20",
        LeadStatus.partial: "bg-amber-500/10 text-amber-600 border-amber-500/20",
        LeadStatus.lead: "bg-blue-500/10 text-blue-600 border-blue-500/20",
        LeadStatus.booked: "bg-emerald-500/10 text-emerald-600 border-emerald-500/20",
    }
)

NEUTRAL_BADGE_COLOR = "bg-muted text-muted-foreground"

SUBMIT_MODES = frozenset({"submit"})


def _as_status(status: Any) -> LeadStatus | None:
    try:
        return LeadStatus(status)
    except ValueError:
        return None


def get_lead_state_label(status: LeadStatus | str | None) -> str:
    known = _as_status(status)
    if known is not None:
        return LEAD_STATE_LABELS[known]
    return "" if status is None else str(status)


def get_lead_state_badge_color(status: LeadStatus | str | None) -> str:
    known = _as_status(status)
    return LEAD_STATE_BADGE_COLORS[known] if known is not None else NEUTRAL_BADGE_COLOR


def derive_lead_status(
    *,
    email: str | None = None,
    phone: str | None = None,
    name: str | None = None,
    submit_mode: str | None = None,
    step_intent: str | None = None,
    booked: bool = False,
) -> LeadStatus:
    """Status implied by a single funnel submission.

    Answers alone make a visitor, any contact detail a partial lead. A submit,
    or any submission from a capture step (drafts included), makes a lead.
    """
    if booked:
        return LeadStatus.booked
    if submit_mode in SUBMIT_MODES or step_intent == StepIntent.capture.value:
        return LeadStatus.lead
    if email or phone or name:
        return LeadStatus.partial
    return LeadStatus.visitor


def is_lead_status_progression(current: Any, candidate: Any) -> bool:
    return lead_status_rank(candidate) >= lead_status_rank(current)


def advance_lead_status(current: Any, candidate: Any) -> LeadStatus:
    """Later of two statuses; advisory, callers may still move a lead backwards."""
    current_rank = lead_status_rank(current)
    candidate_rank = lead_status_rank(candidate)
    best = max(current_rank, candidate_rank)
    return LEAD_STATUS_ORDER[best] if best >= 0 else LeadStatus.visitor


__all__ = [
    "LEAD_STATE_BADGE_COLORS",
    "LEAD_STATE_LABELS",
    "NEUTRAL_BADGE_COLOR",
    "advance_lead_status",
    "derive_lead_status",
    "get_lead_state_badge_color",
    "get_lead_state_label",
    "is_lead_status_progression",
]

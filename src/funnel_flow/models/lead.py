from __future__ import annotations

from enum import Enum


class LeadStatus(str, Enum):
    visitor = "visitor"
    partial = "partial"
    lead = "lead"
    booked = "booked"


LEAD_STATUS_ORDER: tuple[LeadStatus, ...] = (
    LeadStatus.visitor,
    LeadStatus.partial,
    LeadStatus.lead,
    LeadStatus.booked,
)


def lead_status_rank(status: LeadStatus | str | None) -> int:
    """Position in the respondent lifecycle; -1 for anything outside it."""
    try:
        return LEAD_STATUS_ORDER.index(LeadStatus(status))
    except ValueError:
        return -1


__all__ = ["LeadStatus", "LEAD_STATUS_ORDER", "lead_status_rank"]

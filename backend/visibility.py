# Visibility rules - pure eligibility checks for sharing and viewing, plus anonymized provenance
from __future__ import annotations

from typing import Dict, Optional

from models import Clinic, Patient, Report, ReportTier
from seed import SEED_CLINIC_ORDER

REASON_NOT_OPTED_IN = "author not opted in"
REASON_NO_CONSENT = "patient has not consented"
REASON_PRIVATE_TIER = "tier is Private"


def is_shareable(report: Report, patient: Patient, author_clinic: Clinic) -> bool:
    """Evaluated once at authorship; the outcome is an audit fact, not live state."""
    return author_clinic.optedIn and patient.consent and report.tier != ReportTier.PRIVATE


def is_discoverable(report: Report, patient: Patient, requesting_clinic_id: str) -> bool:
    """Independent of the requester's opt-in and balance; those are checked at unlock time."""
    return (
        report.authorClinicId != requesting_clinic_id
        and report.tier != ReportTier.PRIVATE
        and patient.consent
    )


def reason_blocked(author_clinic: Clinic, patient: Patient, tier: ReportTier) -> Optional[str]:
    """First matching rule wins so audit messages carry exactly one reason."""
    if not author_clinic.optedIn:
        return REASON_NOT_OPTED_IN
    if not patient.consent:
        return REASON_NO_CONSENT
    if ReportTier(tier) == ReportTier.PRIVATE:
        return REASON_PRIVATE_TIER
    return None


def contributor_label(clinic_id: str) -> str:
    """Pseudonymous author label from the clinic's position in the static seed directory."""
    try:
        position = SEED_CLINIC_ORDER.index(clinic_id) + 1
    except ValueError:
        return "Contributor #?"
    return f"Contributor #{position}"


def redacted_view(report: Report, unlocked: bool) -> Dict:
    """
    What a non-author sees of a report. The author is only ever shown by label.
    Locked: metadata only. Unlocked: summary, plus full notes for the Full tier.
    """
    view: Dict = {
        "id": report.id,
        "patientId": report.patientId,
        "tier": report.tier.value,
        "contributor": contributor_label(report.authorClinicId),
        "reportType": report.reportType,
        "visitDate": report.visitDate,
        "timestamp": report.timestamp,
        "unlocked": unlocked,
    }
    if unlocked:
        view["summary"] = report.summary
        if report.tier == ReportTier.FULL:
            view["notes"] = report.notes
    return view

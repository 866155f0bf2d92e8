# Business logic - exchange commands and queries over an explicit NetworkState
from __future__ import annotations

import functools
import logging
from typing import Dict, List, Optional, Tuple

from errors import (
    AuthError,
    InsufficientCreditsError,
    MissingInputError,
    NoEligibleViewerError,
    NotFoundError,
    NotOptedInError,
    ReportUnavailableError,
)
from models import Clinic, LedgerEntry, LedgerEventType, NetworkState, Patient, Report, ReportTier, new_id
from visibility import contributor_label, is_discoverable, is_shareable, reason_blocked

logger = logging.getLogger(__name__)


def _command(fn):
    """Run a state-changing operation under the network write lock, then notify listeners."""
    @functools.wraps(fn)
    def wrapper(network: NetworkState, *args, **kwargs):
        with network.lock:
            result = fn(network, *args, **kwargs)
        network.notify()
        return result
    return wrapper


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def get_clinic(network: NetworkState, clinic_id: str) -> Clinic:
    clinic = network.clinics.get(clinic_id)
    if not clinic:
        raise NotFoundError("Clinic not found")
    return clinic


def get_patient(network: NetworkState, patient_id: str) -> Patient:
    patient = network.patients.get(patient_id)
    if not patient:
        raise NotFoundError("Patient not found")
    return patient


def get_report(network: NetworkState, report_id: str) -> Report:
    report = network.reports.get(report_id)
    if not report:
        raise NotFoundError("Report not found")
    return report


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def list_clinics(network: NetworkState) -> List[Tuple[Clinic, int]]:
    """All clinics in directory order with their current balance."""
    with network.lock:
        return [(c, network.ledger.balance(c.id)) for c in network.clinics.values()]


def list_patients(network: NetworkState) -> List[Patient]:
    with network.lock:
        return list(network.patients.values())


def is_unlocked(network: NetworkState, viewer_clinic_id: str, report_id: str) -> bool:
    return (viewer_clinic_id, report_id) in network.unlocks


def discoverable_reports(network: NetworkState, patient_id: str, requesting_clinic_id: str) -> List[Report]:
    """External reports for a patient that the requesting clinic could unlock (or already has)."""
    with network.lock:
        get_clinic(network, requesting_clinic_id)
        patient = get_patient(network, patient_id)
        return [
            r for r in network.reports.values()
            if r.patientId == patient_id and is_discoverable(r, patient, requesting_clinic_id)
        ]


def authored_reports(network: NetworkState, clinic_id: str) -> List[Dict]:
    """A clinic's own reports, each with its current sharing status."""
    with network.lock:
        clinic = get_clinic(network, clinic_id)
        results = []
        for r in network.reports.values():
            if r.authorClinicId != clinic_id:
                continue
            patient = network.patients[r.patientId]
            results.append({"report": r, "shared": is_shareable(r, patient, clinic)})
        return results


def audit_log(network: NetworkState, transfers_only: bool = False) -> List[LedgerEntry]:
    with network.lock:
        return network.ledger.entries(transfers_only=transfers_only)


def current_clinic(network: NetworkState) -> Optional[Clinic]:
    if network.sessionClinicId is None:
        return None
    return network.clinics.get(network.sessionClinicId)


# ---------------------------------------------------------------------------
# Session and directory commands
# ---------------------------------------------------------------------------

@_command
def login(network: NetworkState, username: str, password: Optional[str] = None) -> Clinic:
    """
    Illustrative credentials only. The username must match a clinic; when that clinic
    carries a password it must match too.
    """
    if not username or not username.strip():
        raise MissingInputError("Username is required")
    match = next((c for c in network.clinics.values() if c.username == username.strip()), None)
    if match is None or (match.password is not None and match.password != password):
        raise AuthError("Invalid credentials")

    network.sessionClinicId = match.id
    network.ledger.record_event(LedgerEventType.LOGIN, f"Successful login: {match.name}")
    logger.info("Clinic %s logged in", match.id)
    return match


@_command
def logout(network: NetworkState):
    network.sessionClinicId = None


@_command
def set_opt_in(network: NetworkState, clinic_id: str, value: bool) -> Clinic:
    clinic = get_clinic(network, clinic_id)
    network.ledger.set_opt_in(clinic_id, value)
    network.ledger.record_event(
        LedgerEventType.OPT,
        f"{clinic.name} switched status to {'OPTED IN' if clinic.optedIn else 'OPTED OUT'}",
    )
    return clinic


@_command
def set_patient_consent(network: NetworkState, patient_id: str, consent: bool) -> Patient:
    """Consent changes apply going forward; earlier SHARE/BLOCKED entries stand."""
    patient = get_patient(network, patient_id)
    patient.consent = bool(consent)
    network.ledger.record_event(
        LedgerEventType.CONSENT,
        f"Consent for {patient.name} set to {'GRANTED' if patient.consent else 'WITHDRAWN'}",
    )
    return patient


# ---------------------------------------------------------------------------
# Report authoring
# ---------------------------------------------------------------------------

@_command
def create_report(
    network: NetworkState,
    author_clinic_id: str,
    patient_id: str,
    tier: str,
    notes: str,
    summary: Optional[str] = None,
    report_type: Optional[str] = None,
    visit_date: Optional[str] = None,
) -> Tuple[Report, bool, Optional[str]]:
    """
    Save a report, then resolve its sharing outcome once.
    Returns (report, shared, reason). Saving always succeeds; no credits move here.
    """
    if not patient_id:
        raise MissingInputError("Patient is required")
    if not notes or not notes.strip():
        raise MissingInputError("Clinical notes are required")
    try:
        tier = ReportTier(tier)
    except ValueError:
        raise MissingInputError(f"Unknown tier: {tier}")

    author = get_clinic(network, author_clinic_id)
    patient = get_patient(network, patient_id)

    report = Report(
        id=new_id(),
        patientId=patient.id,
        authorClinicId=author.id,
        tier=tier,
        notes=notes,
        summary=summary,
        reportType=report_type,
        visitDate=visit_date,
    )
    network.reports[report.id] = report

    if is_shareable(report, patient, author):
        author.reportsShared += 1
        network.ledger.record_event(
            LedgerEventType.SHARE,
            f"{author.name} shared a {tier.value} report for {patient.name}",
        )
        return report, True, None

    reason = reason_blocked(author, patient, tier)
    network.ledger.record_event(
        LedgerEventType.BLOCKED,
        f"{author.name} saved {tier.value} report for {patient.name}. Network share blocked: {reason}",
    )
    return report, False, reason


# ---------------------------------------------------------------------------
# View-unlock protocol
# ---------------------------------------------------------------------------

def _unlock(network: NetworkState, viewer_clinic_id: str, report_id: str) -> Tuple[Report, bool]:
    viewer = get_clinic(network, viewer_clinic_id)
    report = get_report(network, report_id)
    patient = network.patients[report.patientId]
    if not is_discoverable(report, patient, viewer.id):
        raise ReportUnavailableError("Report is not available to this clinic")

    # Already paid for: satisfied without another charge, whatever the current balance
    key = (viewer.id, report.id)
    if key in network.unlocks:
        return report, False

    cost = network.economy.view_cost
    if not viewer.optedIn:
        raise NotOptedInError("You must be Opted In to view reports.")
    if network.ledger.balance(viewer.id) < cost:
        raise InsufficientCreditsError("Insufficient credits. Start sharing reports to earn credits!")

    network.ledger.transfer(viewer.id, report.authorClinicId, cost)
    network.unlocks.add(key)
    viewer.reportsViewed += 1

    label = contributor_label(report.authorClinicId)
    network.ledger.record_event(
        LedgerEventType.VIEW,
        f"{viewer.name} viewed {label}'s report for {patient.name}",
    )
    network.ledger.record_event(
        LedgerEventType.TRANSFER,
        f"TRANSFER: -{cost} from {viewer.name} -> +{cost} to {label}",
    )
    return report, True


@_command
def unlock_view(network: NetworkState, viewer_clinic_id: str, report_id: str) -> Tuple[Report, bool]:
    """
    Pay the view cost to the author and unlock the report for the viewer.
    Returns (report, unlocked_now); unlocked_now is False when the pair was already unlocked,
    in which case nothing is charged or recorded.
    """
    return _unlock(network, viewer_clinic_id, report_id)


@_command
def simulate_consume(network: NetworkState, viewer_clinic_id: str) -> List[Report]:
    """
    Unlock eligible external reports one by one until the batch cap is hit or the
    viewer can no longer afford another view. Earlier unlocks are kept.
    """
    viewer = get_clinic(network, viewer_clinic_id)
    if not viewer.optedIn:
        raise NotOptedInError("Opt in first")

    economy = network.economy
    candidates = [
        r for r in network.reports.values()
        if is_discoverable(r, network.patients[r.patientId], viewer.id)
        and not is_unlocked(network, viewer.id, r.id)
    ]

    consumed: List[Report] = []
    for report in candidates:
        if len(consumed) >= economy.max_simulated_views:
            break
        if network.ledger.balance(viewer.id) < economy.view_cost:
            break
        report, unlocked_now = _unlock(network, viewer.id, report.id)
        if unlocked_now:
            consumed.append(report)

    logger.info(
        "Simulated consume for %s: %d reports, %d credits",
        viewer.id, len(consumed), len(consumed) * economy.view_cost,
    )
    return consumed


@_command
def simulate_earn(network: NetworkState, clinic_id: str) -> Tuple[Clinic, Report]:
    """
    Have another clinic view one of this clinic's reports, through the same unlock protocol.
    Returns (viewer, report).
    """
    clinic = get_clinic(network, clinic_id)
    my_reports = [r for r in network.reports.values() if r.authorClinicId == clinic.id]
    if not my_reports:
        raise NoEligibleViewerError("You haven't shared any reports yet. Create one first!")

    cost = network.economy.view_cost
    for other in network.clinics.values():
        if other.id == clinic.id or not other.optedIn:
            continue
        if network.ledger.balance(other.id) < cost:
            continue
        for report in my_reports:
            patient = network.patients[report.patientId]
            if is_discoverable(report, patient, other.id) and not is_unlocked(network, other.id, report.id):
                _unlock(network, other.id, report.id)
                return other, report

    raise NoEligibleViewerError("No other clinics have enough credits to view your reports.")

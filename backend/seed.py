# Seed data - the demo network of five clinics, ten patients and four starting reports
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from config import Economy, load_economy
from models import Clinic, NetworkState, Patient, Report, ReportTier

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "Heidi123!"

# (id, name, username, optedIn). Order is the directory order used for contributor labels.
SEED_CLINICS = [
    ("c1", "Harbour Physio", "harbour", True),
    ("c2", "Peak Performance", "peak", True),
    ("c3", "City Sports Rehab", "city", False),
    ("c4", "Northside Physio", "north", True),
    ("c5", "Bayside Movement", "bayside", True),
]
SEED_CLINIC_ORDER = [clinic_id for clinic_id, _, _, _ in SEED_CLINICS]

# (id, name, homeClinicId, consent)
SEED_PATIENTS = [
    ("p1", "Sam Lee", "c1", True),
    ("p2", "Maya Patel", "c1", True),
    ("p3", "Jordan Kim", "c2", True),
    ("p4", "Ava Chen", "c2", True),
    ("p5", "Noah Singh", "c3", False),
    ("p6", "Priya Rao", "c3", True),
    ("p7", "Ethan Park", "c4", True),
    ("p8", "Sofia Gomez", "c4", False),
    ("p9", "Liam Walker", "c5", True),
    ("p10", "Zara Ali", "c5", True),
]

# (id, patientId, authorClinicId, tier, notes, days ago)
SEED_REPORTS = [
    ("r1", "p1", "c1", ReportTier.SUMMARY,
     "Patient showing good progress on ACL recovery. Range of motion improved by 15 degrees.", 1),
    ("r2", "p3", "c2", ReportTier.SUMMARY,
     "Shoulder impingement persists. Recommended switching to eccentric loading.", 2),
    ("r3", "p6", "c3", ReportTier.FULL,
     "Complex lower back pain history. Full MRI details attached (simulated). Daily exercises required.", 3),
    ("r4", "p7", "c4", ReportTier.SUMMARY,
     "Ankle sprain Grade II. Standard RICE protocol followed for 1 week.", 4),
]


def seed_clinics() -> dict:
    return {
        clinic_id: Clinic(id=clinic_id, name=name, username=username, password=DEMO_PASSWORD, optedIn=opted_in)
        for clinic_id, name, username, opted_in in SEED_CLINICS
    }


def seed_patients() -> dict:
    return {
        patient_id: Patient(id=patient_id, name=name, homeClinicId=home, consent=consent)
        for patient_id, name, home, consent in SEED_PATIENTS
    }


def build_network(economy: Optional[Economy] = None, with_reports: bool = True) -> NetworkState:
    """Build a fresh seeded network. Seed reports count towards reportsShared when shareable."""
    from ledger import Ledger
    from visibility import is_shareable

    economy = economy or load_economy()
    clinics = seed_clinics()
    patients = seed_patients()
    network = NetworkState(
        clinics=clinics,
        patients=patients,
        ledger=Ledger(clinics, economy.initial_credits),
        economy=economy,
    )

    if with_reports:
        now = datetime.now(timezone.utc)
        for report_id, patient_id, author_id, tier, notes, days_ago in SEED_REPORTS:
            report = Report(
                id=report_id,
                patientId=patient_id,
                authorClinicId=author_id,
                tier=tier,
                notes=notes,
                timestamp=(now - timedelta(days=days_ago)).isoformat(),
            )
            network.reports[report.id] = report
            if is_shareable(report, patients[patient_id], clinics[author_id]):
                clinics[author_id].reportsShared += 1

    logger.info(
        "Seed network initialized: %d clinics, %d patients, %d reports, %d credits each",
        len(clinics), len(patients), len(network.reports), economy.initial_credits,
    )
    return network

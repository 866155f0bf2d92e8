# Snapshot persistence - whole-state document, JSON file store and debounced sync
from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from config import Economy
from models import (
    LedgerEntry,
    LedgerEventType,
    NetworkState,
    Report,
    ReportTier,
)

logger = logging.getLogger(__name__)


# Document schema. Field names match the persisted layout.
class ClinicRecord(BaseModel):
    id: str
    name: str
    username: str
    password: Optional[str] = None
    optedIn: bool
    credits: int = Field(ge=0)
    reportsShared: int = 0
    reportsViewed: int = 0


class ReportRecord(BaseModel):
    id: str
    patientId: str
    authorClinicId: str
    tier: ReportTier
    notes: str
    timestamp: str
    summary: Optional[str] = None
    reportType: Optional[str] = None
    visitDate: Optional[str] = None


class LedgerRecord(BaseModel):
    id: str
    timestamp: str
    type: LedgerEventType
    message: str


class UnlockRecord(BaseModel):
    viewerClinicId: str
    reportId: str


class PatientConsentRecord(BaseModel):
    id: str
    consent: bool


class SnapshotDocument(BaseModel):
    clinics: List[ClinicRecord]
    reports: List[ReportRecord]
    ledger: List[LedgerRecord]  # newest first
    unlockedReports: List[UnlockRecord]
    patients: List[PatientConsentRecord] = Field(default_factory=list)


def to_snapshot(network: NetworkState) -> Dict:
    """Serialize the whole network into the persisted document layout."""
    with network.lock:
        doc = SnapshotDocument(
            clinics=[
                ClinicRecord(
                    id=c.id,
                    name=c.name,
                    username=c.username,
                    password=c.password,
                    optedIn=c.optedIn,
                    credits=network.ledger.balance(c.id),
                    reportsShared=c.reportsShared,
                    reportsViewed=c.reportsViewed,
                )
                for c in network.clinics.values()
            ],
            reports=[
                ReportRecord(
                    id=r.id,
                    patientId=r.patientId,
                    authorClinicId=r.authorClinicId,
                    tier=r.tier,
                    notes=r.notes,
                    timestamp=r.timestamp,
                    summary=r.summary,
                    reportType=r.reportType,
                    visitDate=r.visitDate,
                )
                for r in network.reports.values()
            ],
            ledger=[
                LedgerRecord(id=e.id, timestamp=e.timestamp, type=e.type, message=e.message)
                for e in network.ledger.entries()
            ],
            unlockedReports=[
                UnlockRecord(viewerClinicId=viewer, reportId=report)
                for viewer, report in sorted(network.unlocks)
            ],
            patients=[
                PatientConsentRecord(id=p.id, consent=p.consent)
                for p in network.patients.values()
            ],
        )
    return doc.model_dump(mode="json")


def from_snapshot(data: object, economy: Economy) -> Optional[NetworkState]:
    """
    Rebuild a network from a persisted document. Patients are static seed data;
    only their consent flags are restored. Anything malformed yields None.
    """
    from ledger import Ledger
    from seed import seed_clinics, seed_patients

    try:
        doc = SnapshotDocument.model_validate(data)
    except ValidationError as exc:
        logger.warning("Ignoring malformed snapshot: %s", exc.error_count())
        return None

    clinics = seed_clinics()
    balances: Dict[str, int] = {}
    for record in doc.clinics:
        clinic = clinics.get(record.id)
        if clinic is None:
            logger.warning("Ignoring malformed snapshot: unknown clinic %s", record.id)
            return None
        clinic.optedIn = record.optedIn
        clinic.reportsShared = record.reportsShared
        clinic.reportsViewed = record.reportsViewed
        balances[record.id] = record.credits

    patients = seed_patients()
    for record in doc.patients:
        if record.id in patients:
            patients[record.id].consent = record.consent

    reports: Dict[str, Report] = {}
    for record in doc.reports:
        if record.patientId not in patients or record.authorClinicId not in clinics:
            logger.warning("Ignoring malformed snapshot: dangling report %s", record.id)
            return None
        reports[record.id] = Report(**record.model_dump())

    unlocks = set()
    for record in doc.unlockedReports:
        if record.reportId not in reports or record.viewerClinicId not in clinics:
            logger.warning("Ignoring malformed snapshot: dangling unlock %s", record.reportId)
            return None
        unlocks.add((record.viewerClinicId, record.reportId))

    entries = [
        LedgerEntry(id=e.id, timestamp=e.timestamp, type=e.type, message=e.message)
        for e in reversed(doc.ledger)
    ]
    network = NetworkState(
        clinics=clinics,
        patients=patients,
        ledger=Ledger(clinics, economy.initial_credits, balances=balances, entries=entries),
        economy=economy,
        reports=reports,
        unlocks=unlocks,
    )
    logger.info(
        "Restored network from snapshot: %d reports, %d unlocks, %d ledger entries",
        len(reports), len(unlocks), len(entries),
    )
    return network


class JsonFileSnapshotStore:
    """Snapshot collaborator backed by a single JSON file. Writes are atomic via rename."""

    def __init__(self, path: str):
        self.path = Path(path)

    def load(self) -> Optional[dict]:
        if not self.path.exists():
            return None
        with self.path.open("r", encoding="utf-8") as fh:
            return json.load(fh)

    def save(self, snapshot: dict):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as fh:
            json.dump(snapshot, fh, indent=2)
        os.replace(tmp_path, self.path)


def load_network(store, economy: Economy) -> Optional[NetworkState]:
    """Load from the store; an absent store, missing document or any failure means no snapshot."""
    if store is None:
        return None
    try:
        data = store.load()
    except Exception as exc:
        logger.warning("Snapshot load failed, falling back to seed state: %s", exc)
        return None
    if data is None:
        return None
    return from_snapshot(data, economy)


class DebouncedSnapshotSync:
    """
    Network listener that rewrites the whole snapshot after a quiet period.
    Never blocks a command; a failed save is logged and retried on the next change.
    """

    def __init__(self, store, delay_seconds: float = 0.8):
        self.store = store
        self.delay_seconds = delay_seconds
        self._timer: Optional[threading.Timer] = None
        self._guard = threading.Lock()

    def __call__(self, network: NetworkState):
        self.schedule(network)

    def schedule(self, network: NetworkState):
        with self._guard:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay_seconds, self.flush, args=(network,))
            self._timer.daemon = True
            self._timer.start()

    def flush(self, network: NetworkState) -> bool:
        """Save now. Returns True on success."""
        try:
            self.store.save(to_snapshot(network))
        except Exception as exc:
            logger.warning("Snapshot save failed, will retry on next change: %s", exc)
            return False
        logger.debug("Snapshot saved")
        return True

    def cancel(self):
        with self._guard:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

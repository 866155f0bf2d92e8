# In-memory data models - directory, reports, unlocks and the shared network state
from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Set, Tuple

from config import Economy

if TYPE_CHECKING:
    from ledger import Ledger

SUMMARY_PREVIEW_CHARS = 100
DEFAULT_REPORT_TYPE = "General"


class ReportTier(str, Enum):
    PRIVATE = "Private"
    SUMMARY = "Summary"
    FULL = "Full"


class LedgerEventType(str, Enum):
    LOGIN = "LOGIN"
    OPT = "OPT"
    SHARE = "SHARE"
    VIEW = "VIEW"
    TRANSFER = "TRANSFER"
    BLOCKED = "BLOCKED"
    CONSENT = "CONSENT"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass
class Clinic:
    """Participating clinic. The credit balance lives in the Ledger, not here."""
    id: str
    name: str
    username: str
    password: Optional[str] = None
    optedIn: bool = True
    reportsShared: int = 0
    reportsViewed: int = 0


@dataclass
class Patient:
    id: str
    name: str
    homeClinicId: str
    consent: bool = True


def derive_summary(notes: str) -> str:
    """Redacted summary: the notes themselves when short, else a truncated preview."""
    if len(notes) <= SUMMARY_PREVIEW_CHARS:
        return notes
    return notes[:SUMMARY_PREVIEW_CHARS] + "..."


@dataclass
class Report:
    """Authored report. Immutable once stored; optional fields fall back to derived values."""
    id: str
    patientId: str
    authorClinicId: str
    tier: ReportTier
    notes: str
    timestamp: str = field(default_factory=utc_now_iso)
    summary: Optional[str] = None
    reportType: Optional[str] = None
    visitDate: Optional[str] = None

    def __post_init__(self):
        self.tier = ReportTier(self.tier)
        if not self.summary:
            self.summary = derive_summary(self.notes)
        if not self.reportType:
            self.reportType = DEFAULT_REPORT_TYPE
        if not self.visitDate:
            self.visitDate = self.timestamp[:10]


@dataclass(frozen=True)
class LedgerEntry:
    id: str
    timestamp: str
    type: LedgerEventType
    message: str


UnlockKey = Tuple[str, str]  # (viewerClinicId, reportId)


@dataclass
class NetworkState:
    """
    The whole shared state of one exchange network.
    `lock` is the single write boundary: every command holds it for its full duration.
    """
    clinics: Dict[str, Clinic]
    patients: Dict[str, Patient]
    ledger: "Ledger"
    economy: Economy
    reports: Dict[str, Report] = field(default_factory=dict)
    unlocks: Set[UnlockKey] = field(default_factory=set)
    sessionClinicId: Optional[str] = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    listeners: List[Callable[["NetworkState"], None]] = field(default_factory=list, repr=False)

    def add_listener(self, listener: Callable[["NetworkState"], None]):
        self.listeners.append(listener)

    def notify(self):
        for listener in self.listeners:
            listener(self)

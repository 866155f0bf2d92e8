# Backend main entry point - HTTP surface of the give-to-get exchange
import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import logic
from config import (
    allowed_origins,
    is_demo_mode,
    load_economy,
    setup_logging,
    snapshot_debounce_seconds,
    snapshot_path,
)
from errors import ExchangeError
from models import Clinic, LedgerEntry, NetworkState, ReportTier
from monitor import get_credit_monitor
from seed import build_network
from snapshot import DebouncedSnapshotSync, JsonFileSnapshotStore, load_network
from visibility import redacted_view

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Give-to-Get Clinic Exchange API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def init_network(use_snapshot: bool = True) -> NetworkState:
    """
    Restore from the snapshot store when one is configured and readable,
    otherwise start from seed. Wires the debounced sync as a change listener,
    cancelling any save still pending for the network being replaced.
    """
    economy = load_economy()
    path = snapshot_path()
    store = JsonFileSnapshotStore(path) if path else None

    previous_sync = getattr(app.state, "snapshot_sync", None)
    if previous_sync is not None:
        previous_sync.cancel()

    network = load_network(store, economy) if use_snapshot else None
    if network is None:
        network = build_network(economy)
    sync = None
    if store is not None:
        sync = DebouncedSnapshotSync(store, snapshot_debounce_seconds())
        network.add_listener(sync)
    app.state.snapshot_sync = sync
    app.state.network = network
    return network


init_network()


def get_network(request: Request) -> NetworkState:
    return request.app.state.network


@app.exception_handler(ExchangeError)
async def exchange_error_handler(request: Request, exc: ExchangeError):
    logger.info("Refused %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.http_status, content={"detail": exc.message})


# Request/Response models
class ClinicResponse(BaseModel):
    id: str
    name: str
    username: str
    optedIn: bool
    credits: int
    reportsShared: int
    reportsViewed: int


class PatientResponse(BaseModel):
    id: str
    name: str
    homeClinicId: str
    consent: bool


class LoginRequest(BaseModel):
    username: str
    password: Optional[str] = None


class OptInUpdate(BaseModel):
    optedIn: bool


class ConsentUpdate(BaseModel):
    consent: bool


class CreateReportRequest(BaseModel):
    authorClinicId: str
    patientId: str
    tier: ReportTier
    notes: str
    summary: Optional[str] = None
    reportType: Optional[str] = None
    visitDate: Optional[str] = None


class ViewerRequest(BaseModel):
    viewerClinicId: str


class ClinicRequest(BaseModel):
    clinicId: str


class LedgerEntryResponse(BaseModel):
    id: str
    timestamp: str
    type: str
    message: str


def _clinic_response(network: NetworkState, clinic: Clinic) -> ClinicResponse:
    return ClinicResponse(
        id=clinic.id,
        name=clinic.name,
        username=clinic.username,
        optedIn=clinic.optedIn,
        credits=network.ledger.balance(clinic.id),
        reportsShared=clinic.reportsShared,
        reportsViewed=clinic.reportsViewed,
    )


def _entry_response(entry: LedgerEntry) -> LedgerEntryResponse:
    return LedgerEntryResponse(id=entry.id, timestamp=entry.timestamp, type=entry.type.value, message=entry.message)


def _own_report(report) -> dict:
    return {
        "id": report.id,
        "patientId": report.patientId,
        "tier": report.tier.value,
        "notes": report.notes,
        "summary": report.summary,
        "reportType": report.reportType,
        "visitDate": report.visitDate,
        "timestamp": report.timestamp,
    }


@app.get("/")
def read_root():
    return {"message": "Give-to-Get Clinic Exchange API"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}


# Session
@app.post("/auth/login", response_model=ClinicResponse)
def login(body: LoginRequest, network: NetworkState = Depends(get_network)):
    clinic = logic.login(network, body.username, body.password)
    return _clinic_response(network, clinic)


@app.post("/auth/logout")
def logout(network: NetworkState = Depends(get_network)):
    logic.logout(network)
    return {"status": "ok"}


@app.get("/auth/session")
def get_session(network: NetworkState = Depends(get_network)):
    clinic = logic.current_clinic(network)
    return {"clinic": _clinic_response(network, clinic) if clinic else None}


# Directory
@app.get("/clinics", response_model=List[ClinicResponse])
def get_all_clinics(network: NetworkState = Depends(get_network)):
    return [
        ClinicResponse(
            id=clinic.id,
            name=clinic.name,
            username=clinic.username,
            optedIn=clinic.optedIn,
            credits=balance,
            reportsShared=clinic.reportsShared,
            reportsViewed=clinic.reportsViewed,
        )
        for clinic, balance in logic.list_clinics(network)
    ]


@app.post("/clinics/{clinic_id}/opt-in", response_model=ClinicResponse)
def update_opt_in(clinic_id: str, body: OptInUpdate, network: NetworkState = Depends(get_network)):
    clinic = logic.set_opt_in(network, clinic_id, body.optedIn)
    return _clinic_response(network, clinic)


@app.get("/clinics/{clinic_id}/reports")
def get_authored_reports(clinic_id: str, network: NetworkState = Depends(get_network)):
    """The clinic's own reports, in full, with their current sharing status."""
    return [
        {**_own_report(item["report"]), "shared": item["shared"]}
        for item in logic.authored_reports(network, clinic_id)
    ]


@app.get("/patients", response_model=List[PatientResponse])
def get_patients(network: NetworkState = Depends(get_network)):
    return [
        PatientResponse(id=p.id, name=p.name, homeClinicId=p.homeClinicId, consent=p.consent)
        for p in logic.list_patients(network)
    ]


@app.post("/patients/{patient_id}/consent", response_model=PatientResponse)
def update_consent(patient_id: str, body: ConsentUpdate, network: NetworkState = Depends(get_network)):
    p = logic.set_patient_consent(network, patient_id, body.consent)
    return PatientResponse(id=p.id, name=p.name, homeClinicId=p.homeClinicId, consent=p.consent)


@app.get("/patients/{patient_id}/reports")
def get_external_reports(patient_id: str, clinicId: str, network: NetworkState = Depends(get_network)):
    """
    External reports for a patient as seen by clinicId. Authors appear only as
    contributor labels; content is withheld until unlocked.
    """
    reports = logic.discoverable_reports(network, patient_id, clinicId)
    return {
        "patientId": patient_id,
        "count": len(reports),
        "viewCost": network.economy.view_cost,
        "reports": [redacted_view(r, logic.is_unlocked(network, clinicId, r.id)) for r in reports],
    }


# Reports
@app.post("/reports")
def create_report(body: CreateReportRequest, network: NetworkState = Depends(get_network)):
    report, shared, reason = logic.create_report(
        network,
        body.authorClinicId,
        body.patientId,
        body.tier,
        body.notes,
        summary=body.summary,
        report_type=body.reportType,
        visit_date=body.visitDate,
    )
    return {
        "status": "shared" if shared else "blocked",
        "shared": shared,
        "reason": reason,
        "report": _own_report(report),
    }


@app.post("/reports/{report_id}/unlock")
def unlock_report(report_id: str, body: ViewerRequest, network: NetworkState = Depends(get_network)):
    report, unlocked_now = logic.unlock_view(network, body.viewerClinicId, report_id)
    return {
        "status": "unlocked" if unlocked_now else "already_unlocked",
        "charged": network.economy.view_cost if unlocked_now else 0,
        "credits": network.ledger.balance(body.viewerClinicId),
        "report": redacted_view(report, True),
    }


# Simulations
@app.post("/simulate/consume")
def simulate_consume(body: ClinicRequest, network: NetworkState = Depends(get_network)):
    consumed = logic.simulate_consume(network, body.clinicId)
    credits_used = len(consumed) * network.economy.view_cost
    return {
        "consumed": len(consumed),
        "creditsUsed": credits_used,
        "credits": network.ledger.balance(body.clinicId),
        "reportIds": [r.id for r in consumed],
        "message": f"Simulation: Consumed {len(consumed)} reports costing {credits_used} credits.",
    }


@app.post("/simulate/earn")
def simulate_earn(body: ClinicRequest, network: NetworkState = Depends(get_network)):
    viewer, report = logic.simulate_earn(network, body.clinicId)
    return {
        "viewerClinicId": viewer.id,
        "reportId": report.id,
        "earned": network.economy.view_cost,
        "credits": network.ledger.balance(body.clinicId),
        "message": f"Simulation: Someone viewed your report. +{network.economy.view_cost} credits!",
    }


# Audit
@app.get("/ledger", response_model=List[LedgerEntryResponse])
def get_ledger(transfersOnly: bool = False, network: NetworkState = Depends(get_network)):
    return [_entry_response(e) for e in logic.audit_log(network, transfers_only=transfersOnly)]


@app.get("/monitor")
def get_monitor(network: NetworkState = Depends(get_network)):
    return get_credit_monitor(network)


# Demo controls
@app.get("/demo/status")
def demo_status():
    """Returns whether demo mode is enabled. Only for frontend visibility gate."""
    return {"demoMode": is_demo_mode()}


@app.post("/demo/reset")
def demo_reset():
    """
    Reset the network to seed state. Only available when DEMO_MODE=true.
    Restores balances, clears reports created since seeding, unlocks and the ledger.
    """
    if not is_demo_mode():
        raise HTTPException(status_code=404, detail="Demo reset not available")
    network = init_network(use_snapshot=False)
    network.notify()
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

# Credit monitor - derived economy read models (net credits vs stake, network KPIs)
from __future__ import annotations

from typing import Dict, List

from models import LedgerEventType, NetworkState


def clinic_net_credits(network: NetworkState) -> List[Dict]:
    """
    Per-clinic balance against the initial stake. Positive net means the clinic's
    shared reports are paying for more than it consumes.
    """
    initial = network.economy.initial_credits
    rows = []
    for clinic in network.clinics.values():
        balance = network.ledger.balance(clinic.id)
        rows.append({
            "clinicId": clinic.id,
            "name": clinic.name,
            "optedIn": clinic.optedIn,
            "credits": balance,
            "net": balance - initial,
            "reportsShared": clinic.reportsShared,
            "reportsViewed": clinic.reportsViewed,
        })
    return rows


def network_kpis(network: NetworkState) -> Dict:
    """Opt-in rate, sharing volume and credit flow across the whole network."""
    clinics = list(network.clinics.values())
    opted_in = sum(1 for c in clinics if c.optedIn)
    transfers = network.ledger.entries(transfers_only=True)
    return {
        "clinicsCount": len(clinics),
        "optedInCount": opted_in,
        "optInRatePct": round(opted_in / len(clinics) * 100) if clinics else 0,
        "reportsCount": len(network.reports),
        "reportsShared": sum(c.reportsShared for c in clinics),
        "unlocksCount": len(network.unlocks),
        "transfersCount": len(transfers),
        "creditsTransferred": len(network.unlocks) * network.economy.view_cost,
        "totalCredits": network.ledger.total_credits(),
        "blockedShares": sum(
            1 for e in network.ledger.entries() if e.type == LedgerEventType.BLOCKED
        ),
    }


def get_credit_monitor(network: NetworkState) -> Dict:
    with network.lock:
        return {
            "initialCredits": network.economy.initial_credits,
            "viewCost": network.economy.view_cost,
            "clinics": clinic_net_credits(network),
            "kpis": network_kpis(network),
        }

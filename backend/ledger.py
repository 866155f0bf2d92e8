# Credit ledger - per-clinic balances plus the append-only audit log
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from errors import LedgerInvariantError
from models import Clinic, LedgerEntry, LedgerEventType, new_id, utc_now_iso

logger = logging.getLogger(__name__)


class Ledger:
    """
    Owns every balance mutation and every audit write.
    Balances move only through transfer(); callers narrate, the ledger mutates.
    """

    def __init__(
        self,
        clinics: Dict[str, Clinic],
        initial_credits: int,
        balances: Optional[Dict[str, int]] = None,
        entries: Optional[Iterable[LedgerEntry]] = None,
    ):
        self._clinics = clinics
        self._balances: Dict[str, int] = {cid: initial_credits for cid in clinics}
        if balances:
            for clinic_id, amount in balances.items():
                if clinic_id not in clinics:
                    continue
                if amount < 0:
                    raise LedgerInvariantError(f"Negative balance for {clinic_id}: {amount}")
                self._balances[clinic_id] = amount
        # Stored oldest first; entries() reverses for display
        self._entries: List[LedgerEntry] = list(entries or [])

    def balance(self, clinic_id: str) -> int:
        return self._balances.get(clinic_id, 0)

    def balances(self) -> Dict[str, int]:
        return dict(self._balances)

    def total_credits(self) -> int:
        return sum(self._balances.values())

    def record_event(self, kind: LedgerEventType, message: str) -> LedgerEntry:
        """Append an audit entry. Always succeeds."""
        entry = LedgerEntry(id=new_id(), timestamp=utc_now_iso(), type=LedgerEventType(kind), message=message)
        self._entries.append(entry)
        return entry

    def entries(self, transfers_only: bool = False) -> List[LedgerEntry]:
        """Audit log, newest first."""
        ordered = list(reversed(self._entries))
        if transfers_only:
            return [e for e in ordered if e.type == LedgerEventType.TRANSFER]
        return ordered

    def transfer(self, from_clinic_id: str, to_clinic_id: str, amount: int):
        """
        Debit `from` and credit `to` by `amount` in one step.
        Callers must have checked amount > 0 and balance(from) >= amount already;
        a violation raises before either balance changes.
        """
        if amount <= 0:
            raise LedgerInvariantError(f"Transfer amount must be positive, got {amount}")
        if from_clinic_id not in self._balances or to_clinic_id not in self._balances:
            raise LedgerInvariantError(f"Unknown clinic in transfer {from_clinic_id} -> {to_clinic_id}")
        if from_clinic_id == to_clinic_id:
            raise LedgerInvariantError(f"Transfer to self for {from_clinic_id}")
        if self._balances[from_clinic_id] < amount:
            raise LedgerInvariantError(
                f"Transfer of {amount} would overdraw {from_clinic_id} (balance {self._balances[from_clinic_id]})"
            )

        self._balances[from_clinic_id] -= amount
        self._balances[to_clinic_id] += amount
        logger.debug("Transferred %d credits %s -> %s", amount, from_clinic_id, to_clinic_id)

    def set_opt_in(self, clinic_id: str, value: bool):
        """Toggle participation. The caller writes the OPT entry."""
        self._clinics[clinic_id].optedIn = bool(value)

"""
Shared pytest fixtures for the give-to-get exchange tests.
"""
import pytest
from fastapi.testclient import TestClient

from config import Economy
from main import app
from models import LedgerEventType
from seed import build_network


@pytest.fixture
def network():
    """
    Fresh seeded network with default economics (30 credits, view cost 10):
    c1..c5 with c3 opted out; p5 and p8 without consent;
    seed reports r1 (c1/p1), r2 (c2/p3), r3 (c3/p6, Full), r4 (c4/p7).
    """
    return build_network(Economy())


@pytest.fixture
def bare_network():
    """Seeded directory with no reports and an empty ledger."""
    return build_network(Economy(), with_reports=False)


@pytest.fixture
def client(network):
    """FastAPI TestClient bound to the per-test seeded network."""
    app.state.network = network
    return TestClient(app)


def entries_of(network, kind: LedgerEventType):
    return [e for e in network.ledger.entries() if e.type == kind]

"""
Tests for the credit monitor read models.
"""
from logic import create_report, set_opt_in, simulate_consume, unlock_view
from monitor import clinic_net_credits, get_credit_monitor, network_kpis


class TestNetCredits:
    def test_fresh_network_is_flat(self, network):
        rows = clinic_net_credits(network)
        assert [r["net"] for r in rows] == [0, 0, 0, 0, 0]

    def test_consume_only_clinic_drains(self, network):
        """A clinic that only consumes ends below its stake; authors gain"""
        simulate_consume(network, "c1")
        rows = {r["clinicId"]: r for r in clinic_net_credits(network)}
        assert rows["c1"]["net"] == -30
        assert rows["c1"]["reportsViewed"] == 3
        assert rows["c2"]["net"] == 10
        assert rows["c3"]["net"] == 10
        assert rows["c4"]["net"] == 10
        assert sum(r["net"] for r in rows.values()) == 0


class TestKpis:
    def test_counts(self, network):
        set_opt_in(network, "c3", True)
        create_report(network, "c5", "p8", "Full", "No consent.")
        unlock_view(network, "c1", "r2")
        kpis = network_kpis(network)
        assert kpis["optedInCount"] == 5
        assert kpis["optInRatePct"] == 100
        assert kpis["reportsCount"] == 5
        assert kpis["unlocksCount"] == 1
        assert kpis["transfersCount"] == 1
        assert kpis["creditsTransferred"] == 10
        assert kpis["blockedShares"] == 1
        assert kpis["totalCredits"] == 150

    def test_monitor_includes_economics(self, network):
        data = get_credit_monitor(network)
        assert data["initialCredits"] == 30
        assert data["viewCost"] == 10
        assert data["kpis"]["optInRatePct"] == 80

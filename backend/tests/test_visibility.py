"""
Tests for sharing and discovery rules, block reasons and anonymized provenance.
"""
import pytest

from models import Clinic, Patient, Report, ReportTier
from visibility import (
    REASON_NO_CONSENT,
    REASON_NOT_OPTED_IN,
    REASON_PRIVATE_TIER,
    contributor_label,
    is_discoverable,
    is_shareable,
    reason_blocked,
    redacted_view,
)

LONG_NOTES = "Lumbar disc herniation at L4-L5 with radiating pain. " * 5


def _report(tier, author="c2", notes="Short note."):
    return Report(id="rx", patientId="p3", authorClinicId=author, tier=tier, notes=notes)


@pytest.fixture
def author():
    return Clinic(id="c2", name="Peak Performance", username="peak", optedIn=True)


@pytest.fixture
def patient():
    return Patient(id="p3", name="Jordan Kim", homeClinicId="c2", consent=True)


class TestShareable:
    """is_shareable requires opt-in, consent and a non-Private tier"""

    @pytest.mark.parametrize("tier", [ReportTier.SUMMARY, ReportTier.FULL])
    def test_shareable_when_all_conditions_hold(self, author, patient, tier):
        assert is_shareable(_report(tier), patient, author) is True

    def test_private_never_shareable(self, author, patient):
        assert is_shareable(_report(ReportTier.PRIVATE), patient, author) is False

    def test_opted_out_author_not_shareable(self, author, patient):
        author.optedIn = False
        assert is_shareable(_report(ReportTier.FULL), patient, author) is False

    def test_no_consent_not_shareable(self, author, patient):
        patient.consent = False
        assert is_shareable(_report(ReportTier.FULL), patient, author) is False


class TestDiscoverable:
    """is_discoverable ignores the requester's opt-in and balance"""

    def test_external_summary_discoverable(self, patient):
        assert is_discoverable(_report(ReportTier.SUMMARY), patient, "c1") is True

    def test_own_report_not_discoverable(self, patient):
        assert is_discoverable(_report(ReportTier.SUMMARY), patient, "c2") is False

    @pytest.mark.parametrize("requester", ["c1", "c3", "c4", "c5"])
    def test_private_never_discoverable(self, patient, requester):
        assert is_discoverable(_report(ReportTier.PRIVATE), patient, requester) is False

    def test_no_consent_never_discoverable_even_full(self, patient):
        patient.consent = False
        assert is_discoverable(_report(ReportTier.FULL), patient, "c1") is False


class TestReasonBlocked:
    """First matching rule wins: opt-in, then consent, then tier"""

    def test_all_failing_reports_opt_in_first(self, author, patient):
        author.optedIn = False
        patient.consent = False
        assert reason_blocked(author, patient, ReportTier.PRIVATE) == REASON_NOT_OPTED_IN

    def test_consent_before_tier(self, author, patient):
        patient.consent = False
        assert reason_blocked(author, patient, ReportTier.PRIVATE) == REASON_NO_CONSENT

    def test_private_tier(self, author, patient):
        assert reason_blocked(author, patient, ReportTier.PRIVATE) == REASON_PRIVATE_TIER

    def test_no_reason_when_shareable(self, author, patient):
        assert reason_blocked(author, patient, ReportTier.SUMMARY) is None

    def test_reason_strings(self):
        assert REASON_NOT_OPTED_IN == "author not opted in"
        assert REASON_NO_CONSENT == "patient has not consented"
        assert REASON_PRIVATE_TIER == "tier is Private"


class TestContributorLabel:
    """Labels come from static seed directory order"""

    def test_labels_follow_seed_order(self):
        assert contributor_label("c1") == "Contributor #1"
        assert contributor_label("c2") == "Contributor #2"
        assert contributor_label("c5") == "Contributor #5"

    def test_unknown_clinic_has_no_position(self):
        assert contributor_label("nope") == "Contributor #?"

    def test_label_stable_when_opt_in_changes(self, network):
        before = contributor_label("c3")
        network.clinics["c3"].optedIn = True
        assert contributor_label("c3") == before == "Contributor #3"


class TestRedactedView:
    """What non-authors see of a report"""

    def test_locked_view_withholds_content(self):
        view = redacted_view(_report(ReportTier.FULL, notes=LONG_NOTES), unlocked=False)
        assert view["unlocked"] is False
        assert "summary" not in view
        assert "notes" not in view
        assert view["contributor"] == "Contributor #2"
        assert "authorClinicId" not in view

    def test_unlocked_summary_tier_shows_summary_only(self):
        view = redacted_view(_report(ReportTier.SUMMARY, notes=LONG_NOTES), unlocked=True)
        assert view["summary"].endswith("...")
        assert len(view["summary"]) == 103
        assert "notes" not in view

    def test_unlocked_full_tier_shows_full_notes(self):
        view = redacted_view(_report(ReportTier.FULL, notes=LONG_NOTES), unlocked=True)
        assert view["notes"] == LONG_NOTES
        assert view["summary"] == LONG_NOTES[:100] + "..."

    def test_explicit_summary_and_defaults(self):
        report = Report(
            id="ry", patientId="p3", authorClinicId="c2", tier=ReportTier.SUMMARY,
            notes="Detailed notes.", summary="Redacted.", timestamp="2024-05-01T10:00:00+00:00",
        )
        assert report.summary == "Redacted."
        assert report.reportType == "General"
        assert report.visitDate == "2024-05-01"

"""
Tests for PassService.

Covers:
- successful issuance (snapshot, validity window, QR url, audit, notification)
- failures leave no side effects (quota claim undone, no pass, no audit)
- pass code collision retry and exhaustion
- notification failures never fail issuance
- active pass and history lookups
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from gymaccess.entitlements import (
    DuplicateActivePassError,
    GymInactiveError,
    GymNotFoundError,
    NoActiveSubscriptionError,
    QuotaExceededError,
    TierNotAllowedError,
)
from gymaccess.models import GymPass, Subscription
from gymaccess.platform.audit import AuditEvent, AuditEventType
from gymaccess.platform.errors import InternalError
from gymaccess.services.email_sender import PassEmail
from gymaccess.services.pass_service import PassCodeExhaustedError, PassService
from gymaccess.tests.factories import (
    NOW,
    seed_member,
    seed_pass,
    seed_pricing,
    seed_subscription,
)

MEMBER = "auth0|member-1"


def _naive(value):
    return value.replace(tzinfo=None)


@pytest.fixture
def service(network, clock, policy, dispatcher):
    return PassService(network, clock=clock, policy=policy, dispatcher=dispatcher)


@pytest.fixture
def member(network):
    return seed_member(network, MEMBER)


def _codes(*codes):
    remaining = iter(codes)
    return lambda prefix, length: next(remaining)


class TestIssuePass:
    """Tests for PassService.issue_pass()."""

    def test_issues_pass_with_snapshot(self, service, network, member):
        seed_subscription(network, MEMBER, tier="premium")
        seed_pricing(network, "premium", "4.50")

        issued = service.issue_pass(MEMBER, 11)

        assert issued.pass_code.startswith("PASS-")
        assert len(issued.pass_code) == len("PASS-") + 12
        assert issued.valid_until == NOW + timedelta(hours=2)
        assert issued.subscription_tier == "premium"
        assert issued.pass_cost == Decimal("4.50")

        stored = network.get(GymPass, issued.pass_id)
        assert stored.status == "active"
        assert stored.gym_id == 11
        assert stored.subscription_tier == "premium"
        assert stored.pass_cost == Decimal("4.50")
        assert _naive(stored.valid_until) == _naive(NOW + timedelta(hours=2))
        assert stored.used_at is None

    def test_claims_one_visit(self, service, network, member):
        subscription = seed_subscription(network, MEMBER, visits_used=2)

        service.issue_pass(MEMBER, 10)

        assert network.get(Subscription, subscription.id).visits_used == 3

    def test_stores_qr_url_for_code(self, service, network, member):
        seed_subscription(network, MEMBER)

        issued = service.issue_pass(MEMBER, 10)

        assert issued.qrcode_url.startswith("https://api.qrserver.com/")
        assert issued.qrcode_url.endswith(f"data={issued.pass_code}")

    def test_writes_audit_event(self, service, network, member):
        seed_subscription(network, MEMBER)

        issued = service.issue_pass(MEMBER, 10)

        event = network.query(AuditEvent).one()
        assert event.event_type == AuditEventType.PASS_ISSUED.value
        assert event.creator_id == MEMBER
        assert event.target_id == str(issued.pass_id)
        assert event.gym_id == 10
        assert event.gym_chain_id == 5

    def test_submits_notification_after_commit(self, service, network, member, dispatcher):
        seed_subscription(network, MEMBER)

        issued = service.issue_pass(MEMBER, 10)

        dispatcher.submit.assert_called_once()
        email = dispatcher.submit.call_args.args[0]
        assert isinstance(email, PassEmail)
        assert email.to_email == "member@example.com"
        assert email.pass_code == issued.pass_code
        assert email.gym_name == "Iron Works Ancoats"

    def test_quota_exhausted_has_no_side_effects(self, service, network, member, dispatcher):
        subscription = seed_subscription(network, MEMBER, monthly_limit=5, visits_used=5)

        with pytest.raises(QuotaExceededError) as exc_info:
            service.issue_pass(MEMBER, 10)

        assert "5 of 5" in exc_info.value.message
        assert network.get(Subscription, subscription.id).visits_used == 5
        assert network.query(GymPass).count() == 0
        assert network.query(AuditEvent).count() == 0
        dispatcher.submit.assert_not_called()

    def test_no_subscription(self, service, network, member):
        with pytest.raises(NoActiveSubscriptionError):
            service.issue_pass(MEMBER, 10)

    def test_cancelled_subscription(self, service, network, member):
        seed_subscription(network, MEMBER, status="cancelled")

        with pytest.raises(NoActiveSubscriptionError):
            service.issue_pass(MEMBER, 10)

    def test_duplicate_active_pass_releases_claim(self, service, network, member):
        subscription = seed_subscription(network, MEMBER, visits_used=1)
        seed_pass(network, MEMBER, 10, "PASS-LIVE00000001", valid_until=NOW + timedelta(minutes=30))

        with pytest.raises(DuplicateActivePassError):
            service.issue_pass(MEMBER, 11)

        assert network.get(Subscription, subscription.id).visits_used == 1
        assert network.query(GymPass).count() == 1

    @pytest.mark.parametrize("gym_id,error", [
        (999, GymNotFoundError),
        (13, GymInactiveError),
        (11, TierNotAllowedError),
        (12, TierNotAllowedError),
    ])
    def test_gym_failures_release_claim(self, service, network, member, gym_id, error):
        subscription = seed_subscription(network, MEMBER, tier="standard")

        with pytest.raises(error):
            service.issue_pass(MEMBER, gym_id)

        assert network.get(Subscription, subscription.id).visits_used == 0
        assert network.query(GymPass).count() == 0

    def test_retries_on_code_collision(self, network, member, clock, policy, dispatcher):
        subscription = seed_subscription(network, MEMBER)
        seed_pass(network, "auth0|other", 20, "PASS-TAKEN0000001", status="expired",
                  valid_until=NOW - timedelta(days=1))
        service = PassService(
            network, clock=clock, policy=policy, dispatcher=dispatcher,
            code_generator=_codes("PASS-TAKEN0000001", "PASS-FRESH0000001"),
        )

        issued = service.issue_pass(MEMBER, 10)

        assert issued.pass_code == "PASS-FRESH0000001"
        assert network.get(Subscription, subscription.id).visits_used == 1
        assert network.query(GymPass).filter(GymPass.member_id == MEMBER).count() == 1

    def test_code_exhaustion_is_internal_error(self, network, member, clock, policy, dispatcher):
        subscription = seed_subscription(network, MEMBER)
        seed_pass(network, "auth0|other", 20, "PASS-TAKEN0000001", status="expired",
                  valid_until=NOW - timedelta(days=1))
        service = PassService(
            network, clock=clock, policy=policy, dispatcher=dispatcher,
            code_generator=lambda prefix, length: "PASS-TAKEN0000001",
        )

        with pytest.raises(PassCodeExhaustedError) as exc_info:
            service.issue_pass(MEMBER, 10)

        assert isinstance(exc_info.value, InternalError)
        assert exc_info.value.details["attempts"] == policy.code_max_attempts
        assert network.get(Subscription, subscription.id).visits_used == 0

    def test_dispatch_failure_does_not_fail_issuance(self, service, network, member, dispatcher):
        seed_subscription(network, MEMBER)
        dispatcher.submit.side_effect = RuntimeError("executor shut down")

        issued = service.issue_pass(MEMBER, 10)

        assert network.get(GymPass, issued.pass_id) is not None

    def test_member_without_contact_skips_notification(self, service, network, dispatcher):
        seed_subscription(network, "auth0|no-profile")

        service.issue_pass("auth0|no-profile", 10)

        dispatcher.submit.assert_not_called()

    def test_second_pass_after_expiry_window(self, network, member, policy, dispatcher):
        subscription = seed_subscription(network, MEMBER)
        first = PassService(network, clock=lambda: NOW, policy=policy, dispatcher=dispatcher)
        later = PassService(
            network, clock=lambda: NOW + timedelta(hours=3), policy=policy, dispatcher=dispatcher,
        )

        first.issue_pass(MEMBER, 10)
        with pytest.raises(DuplicateActivePassError):
            first.issue_pass(MEMBER, 10)
        later.issue_pass(MEMBER, 10)

        assert network.query(GymPass).count() == 2
        assert network.get(Subscription, subscription.id).visits_used == 2


class TestPassLookups:
    """Tests for find_active_pass() and find_pass_history()."""

    def test_find_active_pass(self, service, network):
        seed_pass(network, MEMBER, 10, "PASS-OLD000000001", status="expired",
                  valid_until=NOW - timedelta(days=2))
        live = seed_pass(network, MEMBER, 11, "PASS-LIVE00000001",
                         valid_until=NOW + timedelta(hours=1))

        assert service.find_active_pass(MEMBER).id == live.id

    def test_find_active_pass_none(self, service, network):
        seed_pass(network, MEMBER, 10, "PASS-OLD000000001", valid_until=NOW - timedelta(seconds=1))
        seed_pass(network, MEMBER, 10, "PASS-NOEXPIRY0001", valid_until=None)

        assert service.find_active_pass(MEMBER) is None

    def test_history_newest_first(self, service, network):
        first = seed_pass(network, MEMBER, 10, "PASS-A00000000001", status="expired",
                          valid_until=NOW - timedelta(days=2))
        second = seed_pass(network, MEMBER, 11, "PASS-B00000000001", status="expired",
                           valid_until=NOW - timedelta(days=1))
        third = seed_pass(network, MEMBER, 10, "PASS-C00000000001",
                          valid_until=NOW + timedelta(hours=1))
        seed_pass(network, "auth0|other", 10, "PASS-D00000000001")

        history = service.find_pass_history(MEMBER)

        assert [p.id for p in history] == [third.id, second.id, first.id]

    def test_history_filtered_by_status(self, service, network):
        seed_pass(network, MEMBER, 10, "PASS-A00000000001", status="expired")
        live = seed_pass(network, MEMBER, 10, "PASS-B00000000001", status="active")

        assert [p.id for p in service.find_pass_history(MEMBER, status=" ACTIVE ")] == [live.id]

    def test_history_empty(self, service):
        assert service.find_pass_history(MEMBER) == []

from datetime import timedelta
from decimal import Decimal

from django.test import TestCase, override_settings
from django.utils import timezone

from nominations.models import Nominee
from payments.models import Payment
from payments.tests.helpers import BROWSER_UA, make_category, make_nominee, make_payment, make_user, make_vote
from votes.eligibility import check_eligibility
from votes.models import Vote


class EligibilityTests(TestCase):
    def setUp(self):
        self.voter = make_user()
        self.category = make_category(vote_price=Decimal("100.00"))
        self.nominee = make_nominee(category=self.category)

    def check(self, amount="100", nominee=None, category=None, **kwargs):
        kwargs.setdefault("user_agent", BROWSER_UA)
        kwargs.setdefault("ip_address", "10.0.0.1")
        nominee_id = nominee if isinstance(nominee, int) else (nominee or self.nominee).pk
        category_id = category if isinstance(category, int) else (category or self.category).pk
        return check_eligibility(self.voter.pk, nominee_id, category_id, Decimal(amount), **kwargs)

    def assertDenied(self, verdict, code):
        self.assertFalse(verdict.allowed)
        self.assertEqual(verdict.code, code)
        self.assertTrue(verdict.reason)

    def test_allowed(self):
        verdict = self.check()
        self.assertTrue(verdict.allowed)
        self.assertEqual(verdict.nominee, self.nominee)
        self.assertEqual(verdict.signals, [])
        self.assertEqual(verdict.fraud_score, 0)

    def test_category_checks(self):
        self.assertDenied(self.check(category=999999), "category_not_found")

        self.category.is_active = False
        self.category.save()
        self.assertDenied(self.check(), "category_inactive")

    def test_voting_window(self):
        now = timezone.now()
        self.category.voting_start = now + timedelta(hours=1)
        self.category.voting_end = now + timedelta(days=2)
        self.category.save()
        self.assertDenied(self.check(), "voting_not_started")

        self.category.voting_start = now - timedelta(days=2)
        self.category.voting_end = now - timedelta(hours=1)
        self.category.save()
        self.assertDenied(self.check(), "voting_closed")

    def test_nominee_checks(self):
        self.assertDenied(self.check(nominee=999999), "nominee_not_found")

        other = make_nominee()
        self.assertDenied(self.check(nominee=other), "nominee_wrong_category")

        for status in (Nominee.STATUS_PENDING, Nominee.STATUS_UNDER_REVIEW, Nominee.STATUS_REJECTED):
            with self.subTest(status=status):
                Nominee.objects.filter(pk=self.nominee.pk).update(status=status)
                self.assertDenied(self.check(), "nominee_not_approved")

        Nominee.objects.filter(pk=self.nominee.pk).update(status=Nominee.STATUS_APPROVED, is_disqualified=True)
        self.assertDenied(self.check(), "nominee_disqualified")

    def test_exact_price(self):
        self.assertDenied(self.check(amount="99.99"), "amount_mismatch")
        self.assertDenied(self.check(amount="200"), "amount_mismatch")
        self.assertTrue(self.check(amount="100.00").allowed)

    @override_settings(VOTE_COOLDOWN_SECONDS=0)
    def test_vote_cap_counts_confirmed_votes_only(self):
        self.category.max_votes_per_user = 2
        self.category.save()

        make_vote(self.voter, self.nominee)
        make_vote(self.voter, self.nominee, status=Vote.STATUS_REFUNDED)
        self.assertTrue(self.check().allowed)

        make_vote(self.voter, make_nominee(category=self.category))
        self.assertDenied(self.check(), "vote_limit_reached")

    @override_settings(VOTE_COOLDOWN_SECONDS=0)
    def test_unlimited_cap(self):
        for _ in range(3):
            make_vote(self.voter, self.nominee)
        self.assertTrue(self.check().allowed)

    def test_pending_payment_window(self):
        payment = make_payment(self.voter, self.nominee)
        self.assertDenied(self.check(), "duplicate_pending_payment")

        Payment.objects.filter(pk=payment.pk).update(created=timezone.now() - timedelta(minutes=16))
        self.assertTrue(self.check().allowed)

    def test_pending_payment_for_other_nominee_is_fine(self):
        make_payment(self.voter, make_nominee(category=self.category))
        self.assertTrue(self.check().allowed)

    @override_settings(VOTE_DAILY_CEILING=2, VOTE_COOLDOWN_SECONDS=0)
    def test_daily_ceiling(self):
        for _ in range(2):
            make_vote(self.voter, self.nominee)
        self.assertTrue(self.check().allowed)

        make_vote(self.voter, self.nominee)
        self.assertDenied(self.check(), "daily_limit_reached")

    @override_settings(VOTE_COOLDOWN_SECONDS=30)
    def test_cooldown(self):
        vote = make_vote(self.voter, self.nominee)
        self.assertDenied(self.check(), "cooldown")

        Vote.objects.filter(pk=vote.pk).update(created=timezone.now() - timedelta(seconds=31))
        self.assertTrue(self.check().allowed)

    def test_checks_run_in_order(self):
        # wrong price and pending payment: the price check comes first
        make_payment(self.voter, self.nominee)
        self.assertDenied(self.check(amount="50"), "amount_mismatch")


class SignalTests(TestCase):
    def setUp(self):
        self.voter = make_user()
        self.nominee = make_nominee()

    def check(self, **kwargs):
        return check_eligibility(self.voter.pk, self.nominee.pk, self.nominee.category_id, Decimal("100"), **kwargs)

    def test_multiple_ips(self):
        other = make_nominee(category=self.nominee.category)
        for i in range(3):
            make_payment(self.voter, other, status=Payment.STATUS_FAILED, ip_address=f"10.0.0.{i + 2}")

        verdict = self.check(ip_address="10.0.0.99", user_agent=BROWSER_UA)
        self.assertTrue(verdict.allowed)
        self.assertEqual(verdict.signals, ["multiple_ips"])
        self.assertEqual(verdict.fraud_score, 25)

    def test_unusual_user_agent(self):
        self.assertIn("unusual_user_agent", self.check(ip_address="10.0.0.1", user_agent="").signals)
        self.assertIn("unusual_user_agent", self.check(ip_address="10.0.0.1", user_agent="curl/8").signals)

    def test_rapid_requests_from_one_ip(self):
        other = make_nominee(category=self.nominee.category)
        for _ in range(11):
            make_payment(make_user(), other, status=Payment.STATUS_FAILED, ip_address="10.9.9.9")

        verdict = self.check(ip_address="10.9.9.9", user_agent="")
        self.assertEqual(verdict.signals, ["unusual_user_agent", "rapid_requests"])
        self.assertEqual(verdict.fraud_score, 50)
        self.assertTrue(verdict.is_suspicious)

    def test_guard_is_read_only(self):
        before = (Payment.objects.count(), Vote.objects.count())
        self.check(ip_address="10.0.0.1", user_agent="")
        self.assertEqual((Payment.objects.count(), Vote.objects.count()), before)

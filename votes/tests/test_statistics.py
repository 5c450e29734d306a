from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from nominations.models import Nominee
from payments.models import Payment
from payments.tests.helpers import make_category, make_nominee, make_payment, make_user, make_vote
from votes import statistics
from votes.models import Vote


class NomineeStatisticsTests(TestCase):
    def setUp(self):
        self.category = make_category()
        self.nominee = make_nominee(category=self.category)
        self.alice, self.bob = make_user(), make_user()

    def test_aggregates_confirmed_votes_only(self):
        make_vote(self.alice, self.nominee)
        make_vote(self.alice, self.nominee)
        make_vote(self.bob, self.nominee)
        make_vote(self.bob, self.nominee, status=Vote.STATUS_REFUNDED)

        stats = statistics.nominee_statistics(self.nominee.pk)

        self.assertEqual(stats["total_votes"], 3)
        self.assertEqual(stats["total_revenue"], Decimal("300.00"))
        self.assertEqual(stats["unique_voters"], 2)
        self.assertEqual(stats["average_vote_value"], Decimal("100.00"))
        self.assertIsNotNone(stats["last_vote_at"])

    def test_empty(self):
        stats = statistics.nominee_statistics(self.nominee.pk)
        self.assertEqual(stats["total_votes"], 0)
        self.assertEqual(stats["average_vote_value"], Decimal("0.00"))
        self.assertIsNone(stats["last_vote_at"])

    def test_recompute_is_idempotent(self):
        make_vote(self.alice, self.nominee)
        first = statistics.recompute_nominee_statistics(self.nominee.pk)
        second = statistics.recompute_nominee_statistics(self.nominee.pk)
        self.assertEqual(first, second)

        self.nominee.refresh_from_db()
        self.assertEqual(self.nominee.total_votes, 1)
        self.assertEqual(self.nominee.unique_voters, 1)

    def test_recompute_repairs_drift(self):
        make_vote(self.alice, self.nominee)
        Nominee.objects.filter(pk=self.nominee.pk).update(total_votes=42, total_revenue=Decimal("9999.00"))

        statistics.recompute_nominee_statistics(self.nominee.pk)
        self.nominee.refresh_from_db()
        self.assertEqual(self.nominee.total_votes, 1)
        self.assertEqual(self.nominee.total_revenue, Decimal("100.00"))

    def test_ranks_within_category(self):
        runner_up = make_nominee(category=self.category)
        make_vote(self.alice, self.nominee)
        make_vote(self.alice, runner_up)
        make_vote(self.bob, runner_up)

        statistics.recompute_nominee_statistics(self.nominee.pk)
        statistics.recompute_nominee_statistics(runner_up.pk)

        self.nominee.refresh_from_db()
        runner_up.refresh_from_db()
        self.assertEqual(runner_up.rank, 1)
        self.assertEqual(self.nominee.rank, 2)

    def test_stats_are_read_under_the_row_lock(self):
        make_vote(self.alice, self.nominee)
        order = mock.Mock()
        with mock.patch("votes.statistics._locked_nominee", wraps=statistics._locked_nominee) as lock, \
                mock.patch("votes.statistics.nominee_statistics", wraps=statistics.nominee_statistics) as read:
            order.attach_mock(lock, "lock")
            order.attach_mock(read, "read")
            statistics.recompute_nominee_statistics(self.nominee.pk)
        self.assertEqual([c[0] for c in order.mock_calls], ["lock", "read"])

    def test_writer_holding_the_lock_is_not_overwritten(self):
        make_vote(self.alice, self.nominee)
        real_lock = statistics._locked_nominee
        interleaved = []

        def other_writer_first(nominee_id):
            # another promotion commits its vote and recompute before this caller gets the row
            if not interleaved:
                interleaved.append(make_vote(self.bob, self.nominee))
                statistics.recompute_nominee_statistics(nominee_id)
            return real_lock(nominee_id)

        with mock.patch("votes.statistics._locked_nominee", side_effect=other_writer_first):
            statistics.recompute_nominee_statistics(self.nominee.pk)

        self.nominee.refresh_from_db()
        self.assertEqual(self.nominee.total_votes, 2)
        self.assertEqual(self.nominee.total_revenue, Decimal("200.00"))

    def test_repair_statistics(self):
        make_vote(self.alice, self.nominee)
        clean = make_nominee(category=self.category)
        self.assertEqual(list(statistics.drifted_nominees()), [self.nominee])

        self.assertEqual(statistics.repair_statistics(), 1)
        self.nominee.refresh_from_db()
        self.assertEqual(self.nominee.total_votes, 1)
        self.assertFalse(statistics.drifted_nominees().exists())
        self.assertEqual(statistics.repair_statistics(), 0)
        clean.refresh_from_db()
        self.assertEqual(clean.total_votes, 0)


class ReadTimeStatisticsTests(TestCase):
    def setUp(self):
        self.category = make_category()
        self.first = make_nominee(category=self.category)
        self.second = make_nominee(category=self.category)
        self.voter = make_user()
        make_vote(self.voter, self.first)
        make_vote(self.voter, self.first)
        make_vote(self.voter, self.second)

    def test_leaderboard(self):
        rows = statistics.leaderboard(category_id=self.category.pk)
        self.assertEqual([r["nominee_id"] for r in rows], [self.first.pk, self.second.pk])
        self.assertEqual(rows[0]["total_votes"], 2)
        self.assertEqual(rows[0]["total_revenue"], Decimal("200.00"))
        self.assertEqual(rows[0]["position"], 1)

    def test_leaderboard_hides_disqualified_and_limits(self):
        Nominee.objects.filter(pk=self.first.pk).update(is_disqualified=True)
        rows = statistics.leaderboard(limit=1)
        self.assertEqual([r["nominee_id"] for r in rows], [self.second.pk])

    def test_category_statistics(self):
        stats = statistics.category_statistics(self.category.pk)
        self.assertEqual(stats["total_votes"], 3)
        self.assertEqual(stats["total_revenue"], Decimal("300.00"))
        self.assertEqual(stats["unique_voters"], 1)
        self.assertEqual(stats["nominees"], 2)
        self.assertTrue(stats["is_voting_open"])
        self.assertEqual(len(stats["leaderboard"]), 2)

    def test_payment_statistics(self):
        make_payment(self.voter, self.first, status=Payment.STATUS_FAILED)
        stats = statistics.payment_statistics()
        self.assertEqual(stats["total_payments"], 4)
        self.assertEqual(stats["by_status"][Payment.STATUS_SUCCESS], 3)
        self.assertEqual(stats["total_revenue"], Decimal("300.00"))
        self.assertEqual(stats["success_rate"], 75.0)
        self.assertEqual(stats["by_gateway"], {"mock": 3})

        other = make_category()
        self.assertEqual(statistics.payment_statistics(category_id=other.pk)["total_payments"], 0)
        future = timezone.now() + timedelta(days=1)
        self.assertEqual(statistics.payment_statistics(start=future)["total_payments"], 0)

    def test_recompute_command(self):
        Nominee.objects.update(total_votes=0, rank=0)
        call_command("recompute_statistics", category=self.category.pk, stdout=StringIO())

        self.first.refresh_from_db()
        self.second.refresh_from_db()
        self.assertEqual((self.first.total_votes, self.first.rank), (2, 1))
        self.assertEqual((self.second.total_votes, self.second.rank), (1, 2))

from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APITestCase

from payments.models import Payment
from payments.tests.helpers import make_admin, make_category, make_nominee, make_payment, make_user, make_vote
from votes.models import Vote


class MyVotesTests(APITestCase):
    def test_lists_only_own_votes(self):
        voter = make_user()
        nominee = make_nominee()
        mine = make_vote(voter, nominee)
        make_vote(make_user(), nominee)

        self.client.force_authenticate(voter)
        resp = self.client.get(reverse("votes_mine"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([row["id"] for row in resp.data["results"]], [mine.pk])
        self.assertNotIn("fraud_score", resp.data["results"][0])

    def test_requires_auth(self):
        self.assertEqual(self.client.get(reverse("votes_mine")).status_code, 403)


class PublicResultsTests(APITestCase):
    def setUp(self):
        self.category = make_category()
        self.leader = make_nominee(category=self.category)
        self.trailer = make_nominee(category=self.category)
        voter = make_user()
        make_vote(voter, self.leader)
        make_vote(voter, self.leader)
        make_vote(voter, self.trailer)

    def test_leaderboard(self):
        resp = self.client.get(reverse("votes_leaderboard"), {"category": self.category.pk})
        self.assertEqual(resp.status_code, 200)
        rows = resp.data["results"]
        self.assertEqual([r["nominee_id"] for r in rows], [self.leader.pk, self.trailer.pk])
        self.assertEqual(rows[0]["total_votes"], 2)

    def test_leaderboard_rejects_bad_params(self):
        resp = self.client.get(reverse("votes_leaderboard"), {"limit": "lots"})
        self.assertEqual(resp.status_code, 400)

    def test_nominee_stats(self):
        resp = self.client.get(reverse("votes_nominee_stats", args=[self.leader.pk]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["total_votes"], 2)
        self.assertEqual(resp.data["unique_voters"], 1)
        self.assertEqual(self.client.get(reverse("votes_nominee_stats", args=[999999])).status_code, 404)

    def test_category_stats(self):
        resp = self.client.get(reverse("votes_category_stats", args=[self.category.pk]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["total_votes"], 3)
        self.assertEqual(len(resp.data["leaderboard"]), 2)


class FlagTests(APITestCase):
    def setUp(self):
        self.vote = make_vote(make_user(), make_nominee())
        self.admin = make_admin()

    def test_admin_only(self):
        self.client.force_authenticate(make_user())
        resp = self.client.post(reverse("votes_flag", args=[self.vote.pk]), {"reason": "shared card"})
        self.assertEqual(resp.status_code, 403)

    def test_flag_and_clear(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.post(reverse("votes_flag", args=[self.vote.pk]), {"reason": "shared card", "score": 80})
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertTrue(resp.data["is_flagged"])
        self.assertEqual(resp.data["fraud_score"], 80)
        self.assertTrue(Payment.objects.get(pk=self.vote.payment_id).is_flagged)

        resp = self.client.post(reverse("votes_unflag", args=[self.vote.pk]), {"notes": "verified with student"})
        self.assertEqual(resp.status_code, 200)
        self.vote.refresh_from_db()
        self.assertFalse(self.vote.is_flagged)
        self.assertEqual(self.vote.reviewed_by, self.admin)
        # flagging never changes the vote itself
        self.assertEqual(self.vote.status, Vote.STATUS_CONFIRMED)


class RequeryCommandTests(APITestCase):
    def test_confirms_expires_and_backfills(self):
        voter = make_user()
        nominee = make_nominee()
        old = timezone.now() - timedelta(minutes=10)

        waiting = make_payment(voter, nominee)
        Payment.objects.filter(pk=waiting.pk).update(created=old)
        stale = make_payment(make_user(), nominee, expires_at=timezone.now() - timedelta(minutes=1))
        orphan = make_payment(make_user(), nominee, status=Payment.STATUS_SUCCESS)

        out = StringIO()
        with self.settings(MOCK_GATEWAY_OUTCOME="success"):
            call_command("requery_pending", "--age-mins", "5", stdout=out, stderr=StringIO())

        waiting.refresh_from_db()
        stale.refresh_from_db()
        self.assertEqual(waiting.status, Payment.STATUS_SUCCESS)
        self.assertEqual(stale.status, Payment.STATUS_EXPIRED)
        self.assertTrue(Vote.objects.filter(payment=waiting).exists())
        self.assertTrue(Vote.objects.filter(payment=orphan).exists())
        self.assertIn("Done.", out.getvalue())

from django.urls import reverse
from rest_framework.test import APITestCase

from nominations.models import Nominee
from nominations.services import NominationError, disqualify_nominee, review_nominee
from payments.tests.helpers import make_admin, make_category, make_nominee, make_user


class ReviewServiceTests(APITestCase):
    def setUp(self):
        self.admin = make_admin()
        self.nominee = make_nominee(status=Nominee.STATUS_PENDING)

    def test_approve_stamps_review(self):
        nominee = review_nominee(self.nominee.pk, approve=True, actor=self.admin, notes="ok")
        self.assertEqual(nominee.status, Nominee.STATUS_APPROVED)
        self.assertEqual(nominee.reviewed_by, self.admin)
        self.assertIsNotNone(nominee.approved_at)
        self.assertTrue(nominee.is_votable)

    def test_reject(self):
        nominee = review_nominee(self.nominee.pk, approve=False, actor=self.admin)
        self.assertEqual(nominee.status, Nominee.STATUS_REJECTED)
        self.assertIsNone(nominee.approved_at)

    def test_disqualified_cannot_be_reviewed(self):
        disqualify_nominee(self.nominee.pk, reason="Academic misconduct", actor=self.admin)
        with self.assertRaises(NominationError):
            review_nominee(self.nominee.pk, approve=True, actor=self.admin)


class NominationViewTests(APITestCase):
    def setUp(self):
        self.category = make_category()
        self.approved = make_nominee(category=self.category)
        self.pending = make_nominee(category=self.category, status=Nominee.STATUS_PENDING)

    def test_public_list_shows_approved_only(self):
        resp = self.client.get(reverse("nominee_list"), {"category": self.category.pk})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([row["id"] for row in resp.data["results"]], [self.approved.pk])

    def test_categories_are_public(self):
        resp = self.client.get(reverse("category_detail", args=[self.category.pk]))
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data["is_voting_open"])

    def test_nominate(self):
        student = make_user()
        self.client.force_authenticate(make_user())
        payload = {
            "student": student.pk,
            "category": self.category.pk,
            "nomination_reason": "Ran the campus tutoring scheme",
        }
        resp = self.client.post(reverse("nominee_list"), payload, format="json")
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["status"], Nominee.STATUS_PENDING)

        resp = self.client.post(reverse("nominee_list"), payload, format="json")
        self.assertEqual(resp.status_code, 400)

    def test_approve_is_admin_only(self):
        url = reverse("nominee_approve", args=[self.pending.pk])
        self.client.force_authenticate(make_user())
        self.assertEqual(self.client.post(url, {}).status_code, 403)

        self.client.force_authenticate(make_admin())
        resp = self.client.post(url, {"notes": "eligible"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["status"], Nominee.STATUS_APPROVED)

    def test_disqualify(self):
        self.client.force_authenticate(make_admin())
        url = reverse("nominee_disqualify", args=[self.approved.pk])
        self.assertEqual(self.client.post(url, {"reason": "short"}).status_code, 400)

        resp = self.client.post(url, {"reason": "Vote buying reported"})
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data["is_disqualified"])

        resp = self.client.post(reverse("nominee_approve", args=[self.approved.pk]), {})
        self.assertEqual(resp.status_code, 409)

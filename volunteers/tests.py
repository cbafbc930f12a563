from datetime import time, timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from core.models import AuditLog, Location
from volunteers.models import VolunteerSession
from volunteers.services import calculate_hours


class CalculateHoursTests(TestCase):
    def test_same_day_session(self):
        self.assertEqual(calculate_hours(time(9, 0), time(12, 30)), Decimal("3.50"))

    def test_session_past_midnight_wraps(self):
        self.assertEqual(calculate_hours(time(22, 0), time(2, 0)), Decimal("4.00"))

    def test_rounds_to_two_places(self):
        self.assertEqual(calculate_hours(time(9, 0), time(9, 20)), Decimal("0.33"))


class VolunteerSessionApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.mckinney = Location.objects.create(name="McKinney")
        self.plano = Location.objects.create(name="Plano")

    def create_session(self, **overrides):
        payload = {
            "location": str(self.mckinney.id),
            "volunteer_name": "Sam Rivera",
            "start_time": "09:00",
            "end_time": "12:00",
        }
        payload.update(overrides)
        return self.client.post("/api/v1/volunteers/sessions/", payload, format="json")

    def test_create_session_computes_hours(self):
        response = self.create_session(start_time="22:00", end_time="02:00")

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["hours_worked"], "4.00")
        self.assertEqual(payload["start_time"], "22:00")
        self.assertEqual(payload["location_name"], "McKinney")
        self.assertTrue(AuditLog.objects.filter(action="volunteer_session.create").exists())

    def test_open_session_has_no_hours(self):
        response = self.create_session(end_time=None)

        self.assertEqual(response.status_code, 201)
        self.assertIsNone(response.json()["hours_worked"])

    def test_closing_a_session_recomputes_hours(self):
        session_id = self.create_session(end_time=None).json()["id"]

        response = self.client.patch(f"/api/v1/volunteers/sessions/{session_id}/", {"end_time": "10:15"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["hours_worked"], "1.25")

    def test_hours_worked_in_body_is_ignored_for_open_session(self):
        response = self.create_session(end_time=None, hours_worked="9.00")

        self.assertEqual(response.status_code, 201)
        self.assertIsNone(response.json()["hours_worked"])
        self.assertIsNone(VolunteerSession.objects.get(pk=response.json()["id"]).hours_worked)

    def test_reopening_a_session_clears_hours(self):
        created = self.create_session().json()
        self.assertEqual(created["hours_worked"], "3.00")

        response = self.client.patch(f"/api/v1/volunteers/sessions/{created['id']}/", {"end_time": None}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()["hours_worked"])
        self.assertIsNone(VolunteerSession.objects.get(pk=created["id"]).hours_worked)

    def test_blank_volunteer_name_is_rejected(self):
        response = self.create_session(volunteer_name="  ")

        self.assertEqual(response.status_code, 400)
        self.assertIn("volunteer_name", response.json()["errors"])

    def test_list_filters_and_limit(self):
        self.create_session()
        self.create_session(volunteer_name="Alex Kim", location=str(self.plano.id))

        by_name = self.client.get("/api/v1/volunteers/sessions/?volunteer_name=sam").json()
        self.assertEqual(by_name["count"], 1)

        by_location = self.client.get(f"/api/v1/volunteers/sessions/?location_id={self.plano.id}").json()
        self.assertEqual([row["volunteer_name"] for row in by_location["results"]], ["Alex Kim"])

        limited = self.client.get("/api/v1/volunteers/sessions/?limit=1")
        self.assertEqual(limited.status_code, 200)
        self.assertEqual(len(limited.json()), 1)

    def test_bad_date_filter_is_rejected(self):
        response = self.client.get("/api/v1/volunteers/sessions/?date_from=yesterday")

        self.assertEqual(response.status_code, 400)

    def test_delete_session(self):
        session_id = self.create_session().json()["id"]

        response = self.client.delete(f"/api/v1/volunteers/sessions/{session_id}/")

        self.assertEqual(response.status_code, 204)
        self.assertFalse(VolunteerSession.objects.filter(pk=session_id).exists())


class VolunteerStatsApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.mckinney = Location.objects.create(name="McKinney")
        self.plano = Location.objects.create(name="Plano")
        today = timezone.localdate()
        VolunteerSession.objects.create(
            location=self.mckinney,
            volunteer_name="Sam",
            session_date=today,
            start_time=time(9, 0),
            end_time=time(12, 0),
            hours_worked=Decimal("3.00"),
        )
        VolunteerSession.objects.create(
            location=self.mckinney,
            volunteer_name="Sam",
            session_date=today - timedelta(days=3),
            start_time=time(9, 0),
            end_time=time(10, 0),
            hours_worked=Decimal("1.00"),
        )
        VolunteerSession.objects.create(
            location=self.plano,
            volunteer_name="Alex",
            session_date=today - timedelta(days=1),
            start_time=time(13, 0),
            end_time=time(15, 0),
            hours_worked=Decimal("2.00"),
        )

    def test_stats_summarise_all_sessions(self):
        response = self.client.get("/api/v1/volunteers/stats/")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["total_sessions"], 3)
        self.assertEqual(Decimal(str(payload["total_hours"])), Decimal("6.00"))
        self.assertEqual(payload["unique_volunteers"], 2)
        self.assertEqual(Decimal(str(payload["average_hours_per_session"])), Decimal("2.00"))
        self.assertEqual(payload["by_location"][0]["location_name"], "McKinney")
        self.assertEqual(payload["by_location"][0]["sessions"], 2)
        self.assertEqual([row["volunteer_name"] for row in payload["recent_volunteers"]], ["Sam", "Alex"])

    def test_stats_respect_location_filter(self):
        response = self.client.get(f"/api/v1/volunteers/stats/?location_id={self.plano.id}")

        payload = response.json()
        self.assertEqual(payload["total_sessions"], 1)
        self.assertEqual(payload["unique_volunteers"], 1)
        self.assertEqual(len(payload["by_location"]), 1)

    def test_stats_with_no_sessions(self):
        VolunteerSession.objects.all().delete()

        payload = self.client.get("/api/v1/volunteers/stats/").json()

        self.assertEqual(payload["total_sessions"], 0)
        self.assertEqual(Decimal(str(payload["total_hours"])), Decimal("0"))
        self.assertEqual(payload["recent_volunteers"], [])

    def test_impossible_date_filter_is_rejected(self):
        response = self.client.get("/api/v1/volunteers/stats/?date_from=2024-02-30")

        self.assertEqual(response.status_code, 400)

import unittest

from fakes import FakeClock, RecordingPushClient, seeded_store

from medrecords.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from medrecords.models.notification import NotificationType
from medrecords.models.permission import access_requests_path
from medrecords.services.container import build_services


class ServiceTestCase(unittest.TestCase):
    def setUp(self):
        self.raw = seeded_store()
        self.push = RecordingPushClient()
        self.services = build_services(
            self.raw, self.push, clock=FakeClock(), background=False
        )


class TestPatientService(ServiceTestCase):
    def test_search_requires_a_criterion(self):
        with self.assertRaises(ValidationError):
            self.services.patients.search_patients()

    def test_search_by_email_is_case_insensitive(self):
        results = self.services.patients.search_patients(email="LAYLA@example.com")
        self.assertEqual([r["id"] for r in results], ["P1"])

    def test_search_by_name_prefix_returns_limited_fields(self):
        results = self.services.patients.search_patients(name="Lay")

        self.assertEqual(len(results), 1)
        self.assertEqual(
            set(results[0]),
            {"id", "name", "age", "gender", "lastUpdated", "hasActiveMedicalConditions"},
        )
        self.assertEqual(results[0]["name"], "Layla Haddad")
        self.assertTrue(results[0]["hasActiveMedicalConditions"])

    def test_update_medical_data_normalizes_entries(self):
        profile = self.services.patients.update_medical_data(
            "P2",
            {
                "medicalConditions": [" diabetes ", "", "  "],
                "hadSurgeries": False,
                "surgeries": ["appendectomy"],
            },
        )

        self.assertEqual(profile.medicalConditions, ["diabetes"])
        self.assertEqual(profile.surgeries, [])
        self.assertEqual(self.raw.get("patients", "P2")["medicalConditions"], ["diabetes"])

    def test_update_medical_data_for_unknown_patient(self):
        with self.assertRaises(NotFoundError):
            self.services.patients.update_medical_data("P404", {"medicalConditions": []})

    def test_registered_push_token_is_used_for_delivery(self):
        self.services.patients.register_push_token("P2", "token-P2")
        self.services.dispatcher.enqueue(
            {
                "userId": "P2",
                "type": "DIAGNOSIS_UPDATE",
                "title": "Diagnosis Update",
                "body": "Updated",
            }
        )
        self.services.dispatcher.process_queue()

        self.assertEqual(self.push.sent[0]["token"], "token-P2")
        self.assertEqual(self.raw.get("users", "P2")["fcmToken"], "token-P2")


class TestDoctorService(ServiceTestCase):
    def test_list_pending_doctors(self):
        pending = self.services.doctors.list_pending_doctors()
        self.assertEqual([d["id"] for d in pending], ["D2"])

    def test_approval_activates_and_notifies(self):
        doctor = self.services.doctors.set_doctor_approval("D2", True)

        self.assertEqual(doctor.status, "active")
        self.assertTrue(self.raw.get("doctors", "D2")["approved"])
        self.assertEqual(self.services.doctors.list_pending_doctors(), [])

        queued = self.services.dispatcher.pending()
        self.assertEqual(len(queued), 1)
        self.assertEqual(queued[0].type, NotificationType.DOCTOR_APPROVAL)
        self.assertEqual(queued[0].userId, "D2")
        self.assertEqual(queued[0].priority, "normal")

    def test_withdrawing_approval_puts_doctor_back_to_pending(self):
        doctor = self.services.doctors.set_doctor_approval("D1", False)
        self.assertEqual(doctor.status, "pending")
        with self.assertRaises(ForbiddenError):
            self.services.doctors.require_active("D1")

    def test_approval_of_unknown_doctor(self):
        with self.assertRaises(NotFoundError):
            self.services.doctors.set_doctor_approval("D404", True)
        self.assertEqual(self.services.dispatcher.pending(), [])


class TestAccessRequests(ServiceTestCase):
    def test_create_and_list(self):
        request = self.services.access_requests.create_request("D1", "P1")

        self.assertEqual(request.doctorId, "D1")
        self.assertFalse(request.notificationSent)
        items = self.services.access_requests.list_for_patient("P1")
        self.assertEqual([i["id"] for i in items], ["D1"])

    def test_repeat_request_conflicts(self):
        self.services.access_requests.create_request("D1", "P1")
        with self.assertRaises(ConflictError):
            self.services.access_requests.create_request("D1", "P1")

    def test_inactive_doctor_cannot_request(self):
        with self.assertRaises(ForbiddenError):
            self.services.access_requests.create_request("D2", "P1")
        self.assertEqual(self.services.access_requests.list_for_patient("P1"), [])

    def test_unknown_patient(self):
        with self.assertRaises(NotFoundError):
            self.services.access_requests.create_request("D1", "P404")

    def test_request_does_not_grant_access(self):
        self.services.access_requests.create_request("D1", "P1")
        self.assertFalse(self.services.registry.has_access("P1", "D1"))

    def test_grant_resolves_the_pending_request(self):
        self.services.access_requests.create_request("D1", "P1")
        self.services.registry.grant_access("P1", "D1")

        self.assertIsNone(self.raw.get(access_requests_path("P1"), "D1"))
        self.assertEqual(self.services.access_requests.list_for_patient("P1"), [])

    def test_doctor_can_ask_again_after_grant_and_revoke(self):
        self.services.access_requests.create_request("D1", "P1")
        self.services.registry.grant_access("P1", "D1")
        self.services.registry.revoke_access("P1", "D1")

        request = self.services.access_requests.create_request("D1", "P1")
        self.assertEqual(request.patientId, "P1")

    def test_deny_removes_the_request(self):
        self.services.access_requests.create_request("D1", "P1")
        self.services.access_requests.deny_request("P1", "D1")

        self.assertEqual(self.services.access_requests.list_for_patient("P1"), [])
        self.assertFalse(self.services.registry.has_access("P1", "D1"))
        self.services.access_requests.create_request("D1", "P1")

    def test_deny_without_request(self):
        with self.assertRaises(NotFoundError):
            self.services.access_requests.deny_request("P1", "D1")

    def test_doctor_with_access_cannot_request(self):
        self.services.registry.grant_access("P1", "D1")
        with self.assertRaises(ConflictError):
            self.services.access_requests.create_request("D1", "P1")


if __name__ == "__main__":
    unittest.main()

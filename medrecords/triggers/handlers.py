"""
Reactive handlers for document store changes.

Each handler turns one raw change into one notification. Handlers run in a
context with no persistent queue, so they send through a DirectDispatcher
and rely on the push endpoint (or the change being redelivered) for retries.

Every handler catches and logs its own errors: nothing may escape to the
hosting runtime.

Document paths watched:
    patients/{patientId}/medicalRecords/{recordId}   -> on_diagnosis_update
    patients/{patientId}/permissions/{doctorId}      -> on_permission_granted / on_permission_revoked
    patients/{patientId}/accessRequests/{doctorId}   -> on_access_request_created
"""

import logging
from typing import Any, Dict, Optional

from medrecords.core.errors import MissingTokenError
from medrecords.services import notifications
from medrecords.services.access_requests import access_requests_path

logger = logging.getLogger(__name__)


def snapshot_data(snap) -> Dict[str, Any]:
    if snap is None or not getattr(snap, "exists", True):
        return {}
    return snap.to_dict() or {}


def _name(doc: Optional[dict], default: str = "Unknown") -> str:
    if not doc:
        return default
    return doc.get("fullName") or doc.get("name") or default


class TriggerHandlers:
    def __init__(self, dispatcher, store):
        """
        ``dispatcher``: a DirectDispatcher (anything with ``send``).
        ``store``: document store adapter used for profile lookups.
        """
        self.dispatcher = dispatcher
        self.store = store

    def on_diagnosis_update(self, change, params: Dict[str, str]) -> None:
        patient_id = params.get("patientId")
        try:
            before = snapshot_data(change.before)
            after = snapshot_data(change.after)
            if before.get("diagnosis") == after.get("diagnosis"):
                return

            if self.store.get("patients", patient_id) is None:
                logger.warning("Patient not found: %s", patient_id)
                return

            self.dispatcher.send(
                notifications.diagnosis_update(
                    patient_id, params.get("recordId"), after.get("diagnosis")
                )
            )
        except MissingTokenError:
            logger.warning("No FCM token found for patient: %s", patient_id)
        except Exception:
            logger.exception("Error sending diagnosis update notification")

    def on_permission_granted(self, snap, params: Dict[str, str]) -> None:
        """Notifies the doctor; the patient hears about it from the registry."""
        doctor_id = params.get("doctorId")
        patient_id = params.get("patientId")
        try:
            patient = self.store.get("patients", patient_id)
            self.dispatcher.send(
                notifications.access_granted_to_doctor(doctor_id, patient_id, _name(patient))
            )
        except MissingTokenError:
            logger.warning("No FCM token found for doctor: %s", doctor_id)
        except Exception:
            logger.exception("Error sending permission granted notification")

    def on_permission_revoked(self, snap, params: Dict[str, str]) -> None:
        doctor_id = params.get("doctorId")
        patient_id = params.get("patientId")
        try:
            doctor = self.store.get("doctors", doctor_id)
            doctor_name = _name(doctor, snapshot_data(snap).get("doctorName") or "Unknown")
            self.dispatcher.send(
                notifications.permission_changed(patient_id, doctor_id, doctor_name, granted=False)
            )
        except MissingTokenError:
            logger.warning("No FCM token found for patient: %s", patient_id)
        except Exception:
            logger.exception("Error sending permission revoked notification")

    def on_access_request_created(self, snap, params: Dict[str, str]) -> None:
        doctor_id = params.get("doctorId")
        patient_id = params.get("patientId")
        try:
            request = snapshot_data(snap)
            # Redelivered event for a request we already announced
            if request.get("notificationSent"):
                return

            doctor = self.store.get("doctors", doctor_id)
            patient = self.store.get("patients", patient_id)
            if doctor is None or patient is None:
                logger.warning("Doctor or patient not found: %s / %s", doctor_id, patient_id)
                return

            self.dispatcher.send(
                notifications.access_request(
                    patient_id,
                    doctor_id,
                    _name(doctor),
                    doctor.get("specialization"),
                    getattr(snap, "id", doctor_id),
                )
            )

            self.store.update(
                access_requests_path(patient_id),
                doctor_id,
                {
                    "notificationSent": True,
                    "notificationSentAt": self.store.server_timestamp(),
                },
            )
            logger.info(
                "Sent access request notification to patient %s from doctor %s",
                patient_id,
                doctor_id,
            )
        except MissingTokenError:
            logger.warning("No FCM token found for patient: %s", patient_id)
        except Exception:
            logger.exception("Error sending access request notification")

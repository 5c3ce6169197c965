"""Doctor-initiated access requests.

A request is a signal for the patient, nothing more: the patient still has
to grant access through the PermissionRegistry. A request stays pending
until the patient answers it: a grant deletes it inside the grant
transaction, a deny deletes it here. Only a pending request blocks a new
one from the same doctor. The ACCESS_REQUEST push is sent by the
``on_access_request_created`` trigger, which also marks the request
``notificationSent``.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

from medrecords.core.errors import ConflictError, NotFoundError
from medrecords.models.permission import AccessRequest, access_requests_path, permissions_path

logger = logging.getLogger(__name__)


class AccessRequestService:
    def __init__(self, store, doctor_service):
        self.store = store
        self.doctors = doctor_service

    def create_request(self, doctor_id: str, patient_id: str) -> AccessRequest:
        self.doctors.require_active(doctor_id)
        if self.store.get("patients", patient_id) is None:
            raise NotFoundError("Patient")

        if self.store.get(permissions_path(patient_id), doctor_id) is not None:
            raise ConflictError("Doctor already has access to this patient")

        path = access_requests_path(patient_id)
        if self.store.get(path, doctor_id) is not None:
            raise ConflictError("An access request for this patient is already pending")

        request = AccessRequest(
            doctorId=doctor_id,
            patientId=patient_id,
            requestedAt=datetime.now(timezone.utc),
        )
        self.store.set(path, doctor_id, request.model_dump())
        logger.info("Doctor %s requested access to patient %s", doctor_id, patient_id)
        return request

    def deny_request(self, patient_id: str, doctor_id: str) -> None:
        path = access_requests_path(patient_id)
        if self.store.get(path, doctor_id) is None:
            raise NotFoundError("Access request")
        self.store.delete(path, doctor_id)
        logger.info("Patient %s denied access request from doctor %s", patient_id, doctor_id)

    def list_for_patient(self, patient_id: str) -> List[dict]:
        return self.store.query(access_requests_path(patient_id))

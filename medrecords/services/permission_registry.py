"""Doctor to patient access grants.

The registry is the only writer of ``patients/{patientId}/permissions/{doctorId}``
and of ``doctors/{doctorId}.activePatientCount``. Both writes for a grant or
a revoke commit in one store transaction; the notification goes out after
the commit so a retried transaction body never queues a duplicate.

Pair lifecycle: NO_ACCESS -> grant -> ACTIVE -> revoke -> NO_ACCESS.
Access requests are advisory and never gate a grant; a grant deletes the
doctor's pending request.
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List

from medrecords.core.errors import ConflictError, NotFoundError
from medrecords.models.permission import (
    PERMISSIONS,
    Permission,
    access_requests_path,
    permissions_path,
)
from medrecords.services import notifications

logger = logging.getLogger(__name__)

PATIENTS = "patients"
DOCTORS = "doctors"

class PermissionRegistry:
    def __init__(self, store, notifier):
        """
        ``store``: a document store adapter (usually CachedDocumentStore).
        ``notifier``: anything with ``send(notification)``.
        """
        self.store = store
        self.notifier = notifier

    # -------------------------
    # Grant / revoke
    # -------------------------
    def grant_access(self, patient_id: str, doctor_id: str) -> Permission:
        def _grant(tx):
            doctor = tx.get(DOCTORS, doctor_id)
            if doctor is None:
                raise NotFoundError("Doctor")
            if doctor.get("status") != "active":
                raise ConflictError("Doctor account is not active")

            if tx.get(PATIENTS, patient_id) is None:
                raise NotFoundError("Patient")

            if tx.get(permissions_path(patient_id), doctor_id) is not None:
                raise ConflictError("Doctor already has access to this patient")

            # A grant answers any pending request from this doctor
            request = tx.get(access_requests_path(patient_id), doctor_id)

            now = datetime.now(timezone.utc)
            permission = Permission(
                doctorId=doctor_id,
                patientId=patient_id,
                grantedAt=now,
                lastUpdated=now,
                status="active",
                doctorName=doctor.get("fullName") or doctor.get("name") or "Unknown",
                doctorSpecialty=(
                    doctor.get("specialization") or doctor.get("specialty") or "Unspecified"
                ),
            )
            count = int(doctor.get("activePatientCount") or 0) + 1

            tx.set(permissions_path(patient_id), doctor_id, permission.model_dump())
            tx.update(DOCTORS, doctor_id, {"activePatientCount": count})
            if request is not None:
                tx.delete(access_requests_path(patient_id), doctor_id)
            return permission

        permission = self.store.run_transaction(_grant)
        logger.info("Granted doctor %s access to patient %s", doctor_id, patient_id)

        self.notifier.send(
            notifications.permission_changed(
                patient_id, doctor_id, permission.doctorName, granted=True
            )
        )
        return permission

    def revoke_access(self, patient_id: str, doctor_id: str) -> None:
        def _revoke(tx):
            existing = tx.get(permissions_path(patient_id), doctor_id)
            if existing is None:
                raise NotFoundError(
                    "Permission",
                    "Doctor has no access to this patient's record",
                )

            doctor = tx.get(DOCTORS, doctor_id)
            if doctor is not None:
                count = max(int(doctor.get("activePatientCount") or 0) - 1, 0)
                tx.update(DOCTORS, doctor_id, {"activePatientCount": count})

            tx.delete(permissions_path(patient_id), doctor_id)
            return existing.get("doctorName") or "Unknown"

        doctor_name = self.store.run_transaction(_revoke)
        logger.info("Revoked doctor %s access to patient %s", doctor_id, patient_id)

        self.notifier.send(
            notifications.permission_changed(patient_id, doctor_id, doctor_name, granted=False)
        )

    # -------------------------
    # Lookups
    # -------------------------
    def has_access(self, patient_id: str, doctor_id: str) -> bool:
        return self.store.get(permissions_path(patient_id), doctor_id) is not None

    def list_doctors_for_patient(self, patient_id: str) -> List[dict]:
        doctors = []
        for perm in self.store.query(permissions_path(patient_id)):
            doctor_id = perm["id"]
            doctor = self.store.get(DOCTORS, doctor_id)
            if doctor is None:
                continue
            doctors.append({**doctor, "id": doctor_id, "permission": _strip_meta(perm)})
        return doctors

    def list_patients_for_doctor(self, doctor_id: str) -> List[dict]:
        patients = []
        for perm in self.store.query_group(PERMISSIONS, [("doctorId", "==", doctor_id)]):
            patient_id = perm.get("patientId")
            if not patient_id:
                continue
            patient = self.store.get(PATIENTS, patient_id)
            if patient is None:
                continue
            patients.append({**patient, "id": patient_id, "permission": _strip_meta(perm)})
        return patients

    # -------------------------
    # Counter reconciliation
    # -------------------------
    def reconcile_counters(self) -> Dict[str, int]:
        """
        Recompute every doctor's activePatientCount from the permission
        documents and rewrite the ones that drifted. Returns the corrections.
        """
        actual = Counter(
            p.get("doctorId") or p["id"] for p in self.store.query_group(PERMISSIONS)
        )

        corrected: Dict[str, int] = {}
        for doctor in self.store.query(DOCTORS):
            doctor_id = doctor["id"]
            expected = actual.get(doctor_id, 0)
            if int(doctor.get("activePatientCount") or 0) != expected:
                self.store.update(DOCTORS, doctor_id, {"activePatientCount": expected})
                corrected[doctor_id] = expected

        if corrected:
            logger.warning("Reconciled activePatientCount for %d doctors", len(corrected))
        return corrected


def _strip_meta(doc: dict) -> dict:
    return {k: v for k, v in doc.items() if k not in ("id", "_path")}

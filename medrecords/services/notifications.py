"""Builders for the notification payloads the system sends."""
from typing import Any, Dict, Optional

from medrecords.models.notification import Notification, NotificationType


def diagnosis_update(patient_id: str, record_id: str, diagnosis: Any = None) -> Notification:
    return Notification(
        userId=patient_id,
        type=NotificationType.DIAGNOSIS_UPDATE,
        title="Diagnosis Update",
        body="Your medical diagnosis has been updated, please review it.",
        data={
            "type": NotificationType.DIAGNOSIS_UPDATE.value,
            "patientId": patient_id,
            "recordId": record_id,
            "diagnosis": diagnosis,
        },
        priority="high",
    )


def permission_changed(
    patient_id: str,
    doctor_id: str,
    doctor_name: str,
    granted: bool,
) -> Notification:
    """Tells the patient a doctor's access to their record changed."""
    if granted:
        kind = NotificationType.PERMISSION_GRANTED
        title = "New Access Granted"
        body = f"Dr. {doctor_name} has been granted access to your medical record."
    else:
        kind = NotificationType.PERMISSION_REVOKED
        title = "Access Revoked"
        body = f"Dr. {doctor_name}'s access to your medical record has been revoked."

    return Notification(
        userId=patient_id,
        type=kind,
        title=title,
        body=body,
        data={
            "type": kind.value,
            "patientId": patient_id,
            "doctorId": doctor_id,
            "doctorName": doctor_name,
        },
    )


def access_granted_to_doctor(doctor_id: str, patient_id: str, patient_name: str) -> Notification:
    return Notification(
        userId=doctor_id,
        type=NotificationType.PERMISSION_GRANTED,
        title="New Access Granted",
        body=f"You have been granted access to the medical record of {patient_name}.",
        data={
            "type": NotificationType.PERMISSION_GRANTED.value,
            "patientId": patient_id,
            "doctorId": doctor_id,
        },
    )


def access_request(
    patient_id: str,
    doctor_id: str,
    doctor_name: str,
    specialization: Optional[str],
    request_id: str,
) -> Notification:
    data: Dict[str, Any] = {
        "type": NotificationType.ACCESS_REQUEST.value,
        "patientId": patient_id,
        "doctorId": doctor_id,
        "doctorName": doctor_name,
        "doctorSpecialization": specialization,
        "requestId": request_id,
    }
    return Notification(
        userId=patient_id,
        type=NotificationType.ACCESS_REQUEST,
        title="New Access Request",
        body=f"Dr. {doctor_name} ({specialization or 'Unspecified'}) is requesting access to your medical record.",
        data=data,
    )


def doctor_approval(doctor_id: str, approved: bool) -> Notification:
    return Notification(
        userId=doctor_id,
        type=NotificationType.DOCTOR_APPROVAL,
        title="Account Approved" if approved else "Account Approval Revoked",
        body=(
            "Your doctor account has been approved. You can now request access to patient records."
            if approved
            else "Your doctor account approval has been revoked."
        ),
        data={
            "type": NotificationType.DOCTOR_APPROVAL.value,
            "doctorId": doctor_id,
            "approved": approved,
        },
        priority="normal",
    )

from medrecords.core.firebase import get_db, init_firebase
from medrecords.services.document_store import FirestoreDocumentStore

init_firebase()
store = FirestoreDocumentStore(get_db())

patients = {
    "demo-patient-1": {"fullName": "Layla Haddad", "email": "layla@example.com", "age": 34, "gender": "female", "medicalConditions": ["asthma"]},
    "demo-patient-2": {"fullName": "Omar Nasser", "email": "omar@example.com", "age": 51, "gender": "male", "medicalConditions": []},
}

doctors = {
    "demo-doctor-1": {"fullName": "Sara Khalil", "specialization": "Cardiology", "status": "active", "approved": True},
    "demo-doctor-2": {"fullName": "Yusuf Amin", "specialization": "Dermatology", "status": "pending", "approved": False},
}


def seed():
    for uid, data in patients.items():
        if store.get("patients", uid):
            print(f"Skipped patient {uid} (Exists)")
            continue
        store.set("patients", uid, {**data, "uid": uid, "role": "patient", "createdAt": store.server_timestamp()})
        print(f"Added patient {uid}")

    for uid, data in doctors.items():
        if store.get("doctors", uid):
            print(f"Skipped doctor {uid} (Exists)")
            continue
        store.set(
            "doctors",
            uid,
            {**data, "uid": uid, "role": "doctor", "activePatientCount": 0, "createdAt": store.server_timestamp()},
        )
        print(f"Added doctor {uid}")


if __name__ == "__main__":
    seed()

from medrecords.core.firebase import get_db, init_firebase
from medrecords.services.document_store import FirestoreDocumentStore
from medrecords.services.notification_dispatcher import DirectDispatcher
from medrecords.services.permission_registry import PermissionRegistry
from medrecords.services.push_client import FcmPushClient, TokenResolver

# One-off run of the counter reconciliation the API runs daily


def main():
    init_firebase()
    store = FirestoreDocumentStore(get_db())
    registry = PermissionRegistry(store, DirectDispatcher(FcmPushClient(), TokenResolver(store)))

    corrected = registry.reconcile_counters()
    if not corrected:
        print("All activePatientCount values match the permission records")
        return
    for doctor_id, count in corrected.items():
        print(f"{doctor_id}: activePatientCount -> {count}")


if __name__ == "__main__":
    main()

"""Set the `role` custom claim used by require_role.

Usage:
    python set_role.py <uid> <patient|doctor|admin>
"""
import sys

from firebase_admin import auth

from medrecords.core.firebase import init_firebase

ROLES = ("patient", "doctor", "admin")

if len(sys.argv) != 3 or sys.argv[2] not in ROLES:
    sys.exit(__doc__)

uid, role = sys.argv[1], sys.argv[2]

init_firebase()
auth.set_custom_user_claims(uid, {"role": role})

print(f"✅ Role claim '{role}' set successfully for UID: {uid}")
print("✅ Now log out and log in again OR refresh token using getIdToken(true)")

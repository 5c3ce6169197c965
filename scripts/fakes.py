"""Test doubles shared by the scripts/test_*.py suites."""
import threading

from memory_store import InMemoryDocumentStore


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingPushClient:
    """Records every send; fails the first ``fail_times`` attempts (all, if None)."""

    def __init__(self, fail_with=None, fail_times=None):
        self.fail_with = fail_with
        self.fail_times = fail_times
        self.attempts = 0
        self.sent = []
        self.delivered = threading.Event()

    def send(self, token, title, body, data=None, priority="high"):
        self.attempts += 1
        if self.fail_with is not None and (
            self.fail_times is None or self.attempts <= self.fail_times
        ):
            raise self.fail_with
        self.sent.append(
            {"token": token, "title": title, "body": body, "data": data, "priority": priority}
        )
        self.delivered.set()
        return f"msg-{self.attempts}"


class FakeSnapshot:
    def __init__(self, data, doc_id="doc", exists=True):
        self._data = data
        self.id = doc_id
        self.exists = exists and data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeChange:
    def __init__(self, before, after):
        self.before = before
        self.after = after


def seeded_store():
    """P1/P2 patients, D1 active doctor, D2 pending doctor; P1 and D1 have tokens."""
    return InMemoryDocumentStore(
        {
            "patients/P1": {
                "uid": "P1",
                "fullName": "Layla Haddad",
                "email": "layla@example.com",
                "age": 34,
                "gender": "female",
                "medicalConditions": ["asthma"],
                "fcmToken": "token-P1",
            },
            "patients/P2": {
                "uid": "P2",
                "fullName": "Omar Nasser",
                "email": "omar@example.com",
                "age": 51,
                "gender": "male",
                "medicalConditions": [],
            },
            "doctors/D1": {
                "uid": "D1",
                "fullName": "Sara Khalil",
                "specialization": "Cardiology",
                "status": "active",
                "approved": True,
                "activePatientCount": 0,
                "fcmToken": "token-D1",
            },
            "doctors/D2": {
                "uid": "D2",
                "fullName": "Yusuf Amin",
                "specialization": "Dermatology",
                "status": "pending",
                "approved": False,
                "activePatientCount": 0,
            },
        }
    )

"""
Tests for the SQLAlchemy record store
"""
import pytest
from datetime import date, datetime

from engagement.domain.interfaces.record_store import DuplicateKeyError, StorageError
from engagement.infrastructure.storage import SQLRecordStore


def appointment(time="10:00", status="pending", **kwargs):
    data = {
        "name": "Priya",
        "email": "priya@example.com",
        "service": "Audit",
        "appointment_date": date(2025, 3, 10),
        "appointment_time": time,
        "status": status,
    }
    data.update(kwargs)
    return data


class TestInsertAndFind:
    """Tests for insert and queries"""

    def test_insert_assigns_id_and_defaults(self, store):
        record = store.insert("appointments", appointment())

        assert len(record["id"]) == 32
        assert record["reminder_sent"] is False
        assert record["duration"] == 30
        assert isinstance(record["created_at"], datetime)

    def test_find_one_missing(self, store):
        assert store.find_one("appointments", {"id": "nope"}) is None

    def test_operators(self, store):
        store.insert("appointments", appointment("09:00"))
        store.insert("appointments", appointment("10:00", status="confirmed"))
        store.insert("appointments", appointment("11:00", status="cancelled"))

        active = store.find("appointments", {"status": {"$in": ["pending", "confirmed"]}})
        not_cancelled = store.find("appointments", {"status": {"$ne": "cancelled"}})
        late = store.find("appointments", {"appointment_time": {"$gte": "10:00"}})
        early = store.find("appointments", {"appointment_time": {"$lt": "10:00"}})

        assert len(active) == 2
        assert len(not_cancelled) == 2
        assert {r["appointment_time"] for r in late} == {"10:00", "11:00"}
        assert [r["appointment_time"] for r in early] == ["09:00"]

    def test_none_matches_null(self, store):
        store.insert("leads", {"email": "a@example.com", "name": "A"})
        store.insert("leads", {"email": "b@example.com", "name": "B", "last_contact_date": datetime(2025, 3, 1)})

        never_contacted = store.find("leads", {"last_contact_date": None})

        assert [r["email"] for r in never_contacted] == ["a@example.com"]

    def test_sort_and_limit(self, store):
        for time in ["11:00", "09:00", "10:00"]:
            store.insert("appointments", appointment(time))

        records = store.find("appointments", sort=[("appointment_time", -1)], limit=2)

        assert [r["appointment_time"] for r in records] == ["11:00", "10:00"]

    def test_unknown_operator(self, store):
        with pytest.raises(StorageError):
            store.find("appointments", {"status": {"$regex": "pend"}})

    def test_unknown_collection(self, store):
        with pytest.raises(StorageError):
            store.find("invoices")

    def test_unknown_field(self, store):
        with pytest.raises(StorageError):
            store.insert("appointments", appointment(colour="blue"))


class TestUniqueness:
    """Tests for database-enforced uniqueness"""

    def test_one_active_appointment_per_slot(self, store):
        store.insert("appointments", appointment("10:00"))

        with pytest.raises(DuplicateKeyError) as exc_info:
            store.insert("appointments", appointment("10:00", status="confirmed"))

        assert exc_info.value.collection == "appointments"

    def test_inactive_appointments_share_slot(self, store):
        store.insert("appointments", appointment("10:00", status="cancelled"))
        store.insert("appointments", appointment("10:00", status="cancelled"))
        store.insert("appointments", appointment("10:00", status="pending"))

        assert store.count_where("appointments") == 3

    def test_unique_lead_email(self, store):
        store.insert("leads", {"email": "a@example.com", "name": "A"})

        with pytest.raises(DuplicateKeyError):
            store.insert("leads", {"email": "a@example.com", "name": "Again"})

    def test_null_dedup_keys_allowed(self, store):
        base = {"type": "system", "title": "T", "message": "M", "recipient": "admin"}
        store.insert("notifications", dict(base))
        store.insert("notifications", dict(base))

        with_key = dict(base, dedup_key="system|x|admin|-")
        store.insert("notifications", with_key)
        with pytest.raises(DuplicateKeyError):
            store.insert("notifications", dict(with_key))

    def test_metadata_column_round_trip(self, store):
        record = store.insert("notifications", {
            "type": "lead", "title": "T", "message": "M", "recipient": "admin",
            "metadata": {"action": "status_update:won"},
        })

        assert store.find_one("notifications", {"id": record["id"]})["metadata"] == {"action": "status_update:won"}


class TestUpdates:
    """Tests for update, delete and count"""

    def test_update_by_id(self, store):
        record = store.insert("appointments", appointment())

        updated = store.update_by_id("appointments", record["id"], {"status": "confirmed"})

        assert updated["status"] == "confirmed"

    def test_update_unknown_id(self, store):
        assert store.update_by_id("appointments", "missing", {"status": "confirmed"}) is None

    def test_compare_and_swap(self, store):
        record = store.insert("leads", {"email": "a@example.com", "name": "A", "version": 0})

        first = store.update_by_id("leads", record["id"], {"name": "B", "version": 1}, expected={"version": 0})
        stale = store.update_by_id("leads", record["id"], {"name": "C", "version": 1}, expected={"version": 0})

        assert first["name"] == "B"
        assert stale is None
        assert store.find_one("leads", {"id": record["id"]})["name"] == "B"

    def test_update_into_conflict(self, store):
        store.insert("appointments", appointment("10:00"))
        other = store.insert("appointments", appointment("10:30"))

        with pytest.raises(DuplicateKeyError):
            store.update_by_id("appointments", other["id"], {"appointment_time": "10:00"})

    def test_update_where_count(self, store):
        for time in ["09:00", "09:30", "10:00"]:
            store.insert("appointments", appointment(time))

        count = store.update_where("appointments", {"appointment_time": {"$lte": "09:30"}}, {"reminder_sent": True})

        assert count == 2
        assert store.count_where("appointments", {"reminder_sent": True}) == 2

    def test_delete(self, store):
        record = store.insert("appointments", appointment())

        assert store.delete_by_id("appointments", record["id"]) is True
        assert store.delete_by_id("appointments", record["id"]) is False
        assert store.count_where("appointments") == 0


class TestFromUrl:
    """Tests for store construction"""

    def test_separate_memory_databases(self):
        a = SQLRecordStore.from_url("sqlite:///:memory:")
        b = SQLRecordStore.from_url("sqlite:///:memory:")
        a.insert("leads", {"email": "a@example.com", "name": "A"})

        assert b.count_where("leads") == 0

    def test_file_database(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'engagement.db'}"
        SQLRecordStore.from_url(url).insert("leads", {"email": "a@example.com", "name": "A"})

        assert SQLRecordStore.from_url(url).count_where("leads") == 1

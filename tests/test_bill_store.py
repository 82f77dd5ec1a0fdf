"""Tests for the bill store, its cache and the key-value backends."""

import asyncio
import json
import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from billcycle.audit import AuditLogger
from billcycle.models.audit import AuditEvent, AuditEventType
from billcycle.models.bill import (
    BillPayment,
    BillStatus,
    IntentStage,
    PaymentIntent,
)
from billcycle.services.storage import (
    BillStore,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueAuditStorage,
    NotFoundError,
    ReadThroughCache,
    StorageError,
)
from billcycle.validation import BillValidationError


NOW = datetime(2026, 3, 10, 12, 0)
TODAY = NOW.date()


def make_store(kv=None, audit_logger=None, clock=lambda: NOW) -> BillStore:
    return BillStore(
        kv if kv is not None else InMemoryKeyValueStore(),
        audit_logger=audit_logger,
        clock=clock,
        key_prefix="test_",
        currency_symbol="$",
    )


def bill_payload(**overrides) -> dict:
    payload = {
        "title": "Electricity",
        "amount": Decimal("50"),
        "category_id": "2",
        "category": "Utilities",
        "due_date": TODAY - timedelta(days=1),
        "frequency": "monthly",
        "reminder_days": 3,
    }
    payload.update(overrides)
    return payload


class FailingKeyValueStore(InMemoryKeyValueStore):
    """Raises StorageError when writing any of the given keys."""

    def __init__(self, failing_keys):
        super().__init__()
        self.failing_keys = set(failing_keys)

    async def set(self, key, records):
        if key in self.failing_keys:
            raise StorageError(f"disk full writing {key}")
        await super().set(key, records)


class TestCreateAndRead:
    """Tests for creating bills and reading them back."""

    def test_round_trip(self):
        """Test fetch returns the payload plus the store-assigned fields."""
        async def scenario():
            store = make_store()
            payload = bill_payload()
            created = await store.create_bill(payload)
            fetched = await store.get_bill_by_id(created.id)

            for key, value in payload.items():
                assert getattr(fetched, key) == value
            assert fetched.id
            assert fetched.created_at == NOW
            assert fetched.next_due_date == datetime(2026, 3, 9, 0, 0)
            assert fetched.paid_history == []
            assert fetched.last_paid_date is None
            assert fetched.status == BillStatus.OVERDUE

        asyncio.run(scenario())

    def test_records_are_camel_case(self):
        """Test the persisted record shape."""
        async def scenario():
            kv = InMemoryKeyValueStore()
            store = make_store(kv)
            await store.create_bill(bill_payload())
            [record] = await kv.get(store.bills_key)
            assert record["nextDueDate"].startswith("2026-03-09T00:00:00")
            assert record["dueDate"] == "2026-03-09"
            assert record["isRecurring"] is True
            assert record["paidHistory"] == []
            assert record["status"] == "overdue"

        asyncio.run(scenario())

    def test_supplied_status_is_stored(self):
        """Test a status in the payload is kept as the stored status."""
        async def scenario():
            kv = InMemoryKeyValueStore()
            store = make_store(kv)
            await store.create_bill(bill_payload(status="upcoming"))
            [record] = await kv.get(store.bills_key)
            assert record["status"] == "upcoming"

        asyncio.run(scenario())

    def test_missing_required_fields(self):
        """Test creation without a title is rejected with field details."""
        async def scenario():
            store = make_store()
            payload = bill_payload()
            del payload["title"]
            with pytest.raises(BillValidationError) as exc_info:
                await store.create_bill(payload)
            assert "title" in exc_info.value.fields
            assert await store.get_all_bills() == []

        asyncio.run(scenario())

    def test_read_recomputes_without_persisting(self):
        """Test the recomputed status is returned but never written back."""
        async def scenario():
            kv = InMemoryKeyValueStore()
            store = make_store(kv)
            created = await store.create_bill(bill_payload(due_date=TODAY + timedelta(days=10)))
            assert created.status == BillStatus.UPCOMING

            later = NOW + timedelta(days=12)
            [bill] = await store.get_all_bills(now=later)
            assert bill.status == BillStatus.OVERDUE

            [record] = await kv.get(store.bills_key)
            assert record["status"] == "upcoming"

        asyncio.run(scenario())

    def test_read_with_timezone_aware_now(self):
        """Test an aware evaluation time is converted to UTC before comparing."""
        async def scenario():
            store = make_store()
            await store.create_bill(bill_payload(due_date=TODAY))

            # 03:00 on Mar 11 at UTC+5 is still Mar 10 in UTC
            plus_five = timezone(timedelta(hours=5))
            [bill] = await store.get_all_bills(now=datetime(2026, 3, 11, 3, 0, tzinfo=plus_five))
            assert bill.status == BillStatus.PENDING

            [bill] = await store.get_all_bills(now=NOW.replace(tzinfo=timezone.utc))
            assert bill.status == BillStatus.PENDING

        asyncio.run(scenario())

    def test_get_missing_bill(self):
        async def scenario():
            store = make_store()
            assert await store.get_bill_by_id("missing") is None
            with pytest.raises(NotFoundError):
                await store.require_bill("missing")

        asyncio.run(scenario())

    def test_malformed_record_raises_storage_error(self):
        async def scenario():
            kv = InMemoryKeyValueStore()
            store = make_store(kv)
            await kv.set(store.bills_key, [{"title": "no amount"}])
            with pytest.raises(StorageError):
                await store.get_all_bills()

        asyncio.run(scenario())


class TestUpdateAndDelete:
    """Tests for edits, deletion and clearing."""

    def test_update_changes_fields(self):
        async def scenario():
            store = make_store()
            created = await store.create_bill(bill_payload())
            updated = await store.update_bill(created.id, {"title": "Power", "amount": Decimal("65")})
            assert updated.title == "Power"
            fetched = await store.get_bill_by_id(created.id)
            assert fetched.title == "Power"
            assert fetched.amount == Decimal("65")
            assert fetched.created_at == created.created_at

        asyncio.run(scenario())

    def test_update_accepts_camel_case_keys(self):
        async def scenario():
            store = make_store()
            created = await store.create_bill(bill_payload())
            updated = await store.update_bill(created.id, {"reminderDays": 5})
            assert updated.reminder_days == 5

        asyncio.run(scenario())

    @pytest.mark.parametrize("updates", [
        {"id": "other"},
        {"due_date": date(2026, 5, 1)},
        {"dueDate": "2026-05-01"},
        {"created_at": datetime(2020, 1, 1)},
        {"paid_history": []},
    ])
    def test_update_rejects_immutable_fields(self, updates):
        async def scenario():
            store = make_store()
            created = await store.create_bill(bill_payload())
            with pytest.raises(BillValidationError):
                await store.update_bill(created.id, updates)

        asyncio.run(scenario())

    def test_update_allows_echoing_unchanged_due_date(self):
        async def scenario():
            store = make_store()
            created = await store.create_bill(bill_payload())
            updated = await store.update_bill(
                created.id,
                {"dueDate": created.due_date.isoformat(), "notes": "autopay soon"},
            )
            assert updated.notes == "autopay soon"

        asyncio.run(scenario())

    def test_update_rejects_invalid_values(self):
        async def scenario():
            store = make_store()
            created = await store.create_bill(bill_payload())
            with pytest.raises(BillValidationError):
                await store.update_bill(created.id, {"amount": Decimal("-5")})

        asyncio.run(scenario())

    def test_update_missing_bill(self):
        async def scenario():
            store = make_store()
            with pytest.raises(NotFoundError):
                await store.update_bill("missing", {"title": "x"})

        asyncio.run(scenario())

    def test_delete_cascades(self):
        """Test deleting a bill removes its payments and notifications only."""
        async def scenario():
            store = make_store()
            keep = await store.create_bill(bill_payload(title="Rent"))
            drop = await store.create_bill(bill_payload(title="Gym"))
            for bill in (keep, drop):
                await store.save_bill_payment(
                    BillPayment(bill_id=bill.id, amount=Decimal("10"), wallet_id="w1")
                )
            assert len(await store.get_bill_notifications()) == 2

            assert await store.delete_bill(drop.id) is True

            assert [b.id for b in await store.get_all_bills()] == [keep.id]
            assert [p.bill_id for p in await store.get_bill_payments()] == [keep.id]
            assert [n.bill_id for n in await store.get_bill_notifications()] == [keep.id]

        asyncio.run(scenario())

    def test_delete_missing_bill_returns_false(self):
        async def scenario():
            store = make_store()
            assert await store.delete_bill("missing") is False

        asyncio.run(scenario())

    def test_clear_all_bills(self):
        async def scenario():
            kv = InMemoryKeyValueStore()
            store = make_store(kv)
            await store.initialize_categories()
            await store.create_bill(bill_payload())
            await store.clear_all_bills()

            assert await store.get_all_bills() == []
            assert await store.get_bill_notifications() == []
            assert store.bills_key not in kv.keys()
            # Categories survive a clear
            assert store.categories_key in kv.keys()

        asyncio.run(scenario())


class TestPaymentsAndIntents:
    """Tests for payment and intent persistence."""

    def test_payments_filtered_by_bill(self):
        async def scenario():
            store = make_store()
            await store.save_bill_payment(BillPayment(bill_id="a", amount=Decimal("1"), wallet_id="w"))
            await store.save_bill_payment(BillPayment(bill_id="b", amount=Decimal("2"), wallet_id="w"))
            assert len(await store.get_bill_payments()) == 2
            [payment] = await store.get_bill_payments("b")
            assert payment.amount == Decimal("2")

        asyncio.run(scenario())

    def test_saving_same_payment_twice_is_noop(self):
        async def scenario():
            store = make_store()
            payment = BillPayment(bill_id="a", amount=Decimal("1"), wallet_id="w")
            await store.save_bill_payment(payment)
            await store.save_bill_payment(payment)
            assert len(await store.get_bill_payments()) == 1

        asyncio.run(scenario())

    def test_intent_upsert_and_filter(self):
        async def scenario():
            store = make_store()
            payment = BillPayment(bill_id="a", amount=Decimal("1"), wallet_id="w")
            intent = await store.save_payment_intent(PaymentIntent(bill_id="a", payment=payment))
            await store.save_payment_intent(intent.model_copy(update={"stage": IntentStage.COMPLETED}))

            intents = await store.get_payment_intents()
            assert len(intents) == 1
            assert intents[0].stage == IntentStage.COMPLETED
            assert intents[0].updated_at == NOW
            assert await store.get_payment_intents([IntentStage.LEDGER_FAILED]) == []

        asyncio.run(scenario())


class TestCategories:
    """Tests for category seeding and custom categories."""

    def test_defaults_before_seeding(self):
        async def scenario():
            store = make_store()
            categories = await store.get_bill_categories()
            assert len(categories) == 10
            assert (await store.get_bill_category("9")).name == "Phone"

        asyncio.run(scenario())

    def test_seeding_is_idempotent(self):
        async def scenario():
            kv = InMemoryKeyValueStore()
            store = make_store(kv)
            assert await store.initialize_categories() is True
            assert await store.initialize_categories() is False
            assert len(await kv.get(store.categories_key)) == 10

        asyncio.run(scenario())

    def test_seeding_keeps_custom_categories(self):
        async def scenario():
            store = make_store()
            await store.initialize_categories()
            pets = await store.create_bill_category("Pets", color="#123456")
            assert await store.initialize_categories() is False

            categories = await store.get_bill_categories()
            assert len(categories) == 11
            assert categories[-1].id == pets.id
            assert await store.get_bill_category("nope") is None

        asyncio.run(scenario())


class TestNotifications:
    """Tests for reminder notifications."""

    def test_reminder_created_with_bill(self):
        async def scenario():
            store = make_store()
            bill = await store.create_bill(bill_payload())
            [notification] = await store.get_bill_notifications(bill.id)
            assert notification.title == "Bill Reminder: Electricity"
            assert notification.message == "Your Electricity bill of $50 is due on Mar 09, 2026"
            assert notification.due_date == bill.next_due_date
            assert notification.is_read is False

        asyncio.run(scenario())

    def test_no_reminder_for_zero_days(self):
        async def scenario():
            store = make_store()
            await store.create_bill(bill_payload(reminder_days=0))
            assert await store.get_bill_notifications() == []

        asyncio.run(scenario())

    def test_reminder_failure_does_not_block_creation(self):
        async def scenario():
            kv = FailingKeyValueStore({"test_bill_notifications"})
            audit_kv = InMemoryKeyValueStore()
            audit_storage = KeyValueAuditStorage(audit_kv, key="audit")
            store = make_store(kv, audit_logger=AuditLogger(audit_storage))

            bill = await store.create_bill(bill_payload())

            assert await store.get_bill_by_id(bill.id) is not None
            events = await audit_storage.get_recent_events()
            assert AuditEventType.NOTIFICATION_FAILED in [e.event_type for e in events]

        asyncio.run(scenario())

    def test_mark_notification_read(self):
        async def scenario():
            store = make_store()
            bill = await store.create_bill(bill_payload())
            [notification] = await store.get_bill_notifications(bill.id)
            updated = await store.mark_notification_read(notification.id)
            assert updated.is_read is True
            [stored] = await store.get_bill_notifications(bill.id)
            assert stored.is_read is True
            with pytest.raises(NotFoundError):
                await store.mark_notification_read("missing")

        asyncio.run(scenario())


class TestBillCache:
    """Tests for cache invalidation on the bill read path."""

    def test_writes_invalidate_cached_reads(self):
        async def scenario():
            store = make_store()
            first = await store.create_bill(bill_payload(title="Rent"))
            assert len(await store.get_all_bills()) == 1

            await store.create_bill(bill_payload(title="Water"))
            assert len(await store.get_all_bills()) == 2

            await store.update_bill(first.id, {"title": "Mortgage"})
            titles = {b.title for b in await store.get_all_bills()}
            assert titles == {"Mortgage", "Water"}

            await store.delete_bill(first.id)
            assert [b.title for b in await store.get_all_bills()] == ["Water"]

        asyncio.run(scenario())

    def test_repeated_reads_hit_the_cache(self):
        async def scenario():
            store = make_store()
            await store.create_bill(bill_payload())
            await store.get_all_bills()
            hits = store.cache.stats.hits
            await store.get_all_bills()
            assert store.cache.stats.hits == hits + 1

        asyncio.run(scenario())


class TestReadThroughCache:
    """Tests for the TTL cache itself."""

    def test_expiry(self):
        clock = [100.0]
        cache = ReadThroughCache(clock=lambda: clock[0])
        cache.set("k", [1], ttl_seconds=2)
        assert cache.get("k") == [1]
        clock[0] += 3
        assert cache.get("k") is None
        assert cache.stats.misses == 1

    def test_zero_ttl_disables_caching(self):
        cache = ReadThroughCache()
        cache.set("k", [1], ttl_seconds=0)
        assert cache.get("k") is None

    def test_values_are_copied(self):
        cache = ReadThroughCache()
        value = [{"a": 1}]
        cache.set("k", value, ttl_seconds=10)
        value[0]["a"] = 2
        cached = cache.get("k")
        assert cached == [{"a": 1}]
        cached.append({"b": 2})
        assert cache.get("k") == [{"a": 1}]

    def test_invalidate_prefix(self):
        cache = ReadThroughCache()
        for key in ("app_bills", "app_payments", "other"):
            cache.set(key, [], ttl_seconds=10)
        cache.invalidate_prefix("app_")
        assert cache.get("app_bills") is None
        assert cache.get("other") == []
        assert cache.stats.invalidations == 2


class TestJsonFileBackend:
    """Tests for the JSON file key-value store."""

    def test_bills_survive_a_new_store(self, tmp_path):
        async def scenario():
            created = await make_store(JsonFileKeyValueStore(tmp_path)).create_bill(bill_payload())

            reopened = make_store(JsonFileKeyValueStore(tmp_path))
            fetched = await reopened.get_bill_by_id(created.id)
            assert fetched.title == "Electricity"
            assert fetched.amount == Decimal("50")

            on_disk = json.loads((tmp_path / "test_bills.json").read_text(encoding="utf-8"))
            assert on_disk[0]["id"] == created.id

        asyncio.run(scenario())

    def test_missing_key_reads_none(self, tmp_path):
        async def scenario():
            kv = JsonFileKeyValueStore(tmp_path)
            assert await kv.get("nothing") is None
            await kv.remove("nothing")

        asyncio.run(scenario())

    def test_remove(self, tmp_path):
        async def scenario():
            kv = JsonFileKeyValueStore(tmp_path)
            await kv.set("k", [{"a": 1}])
            assert await kv.get("k") == [{"a": 1}]
            await kv.remove("k")
            assert await kv.get("k") is None
            assert not (tmp_path / "k.json").exists()

        asyncio.run(scenario())

    def test_corrupt_file(self, tmp_path):
        async def scenario():
            (tmp_path / "k.json").write_text("{not json", encoding="utf-8")
            with pytest.raises(StorageError):
                await JsonFileKeyValueStore(tmp_path).get("k")

        asyncio.run(scenario())

    def test_non_list_file(self, tmp_path):
        async def scenario():
            (tmp_path / "k.json").write_text('{"a": 1}', encoding="utf-8")
            with pytest.raises(StorageError):
                await JsonFileKeyValueStore(tmp_path).get("k")

        asyncio.run(scenario())

    @pytest.mark.parametrize("key", ["", "../escape", "a/b", ".."])
    def test_invalid_keys(self, tmp_path, key):
        async def scenario():
            with pytest.raises(StorageError):
                await JsonFileKeyValueStore(tmp_path).set(key, [])

        asyncio.run(scenario())


class TestAuditTrail:
    """Tests for audit events written by the store."""

    def test_bill_lifecycle_is_audited(self):
        async def scenario():
            kv = InMemoryKeyValueStore()
            audit_storage = KeyValueAuditStorage(kv, key="test_audit_log")
            store = make_store(kv, audit_logger=AuditLogger(audit_storage))

            bill = await store.create_bill(bill_payload())
            await store.update_bill(bill.id, {"title": "Power"})
            await store.delete_bill(bill.id)

            events = await audit_storage.get_events_by_entity("bill", bill.id)
            assert [e.event_type for e in events] == [
                AuditEventType.BILL_CREATED,
                AuditEventType.BILL_UPDATED,
                AuditEventType.BILL_DELETED,
            ]

        asyncio.run(scenario())

    def test_audit_log_keeps_newest_events(self):
        """Test the stored audit log is capped, dropping the oldest events."""
        async def scenario():
            kv = InMemoryKeyValueStore()
            audit_storage = KeyValueAuditStorage(kv, key="test_audit_log", max_events=2)
            for entity_id in ("b1", "b2", "b3"):
                assert await audit_storage.append_event(AuditEvent(
                    event_type=AuditEventType.BILL_CREATED,
                    entity_type="bill",
                    entity_id=entity_id,
                    description="Bill created",
                ))

            assert len(await kv.get("test_audit_log")) == 2
            events = await audit_storage.get_recent_events()
            assert sorted(e.entity_id for e in events) == ["b2", "b3"]

        asyncio.run(scenario())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

"""Tests for reminder evaluation and notification history reconciliation."""

from datetime import datetime

import pytest


def millis(*args):
    from stora.mapping.dates import to_millis

    return to_millis(datetime(*args))


class Recorder:
    """Notifier that remembers what it delivered."""

    def __init__(self):
        self.delivered = []

    def __call__(self, title, message):
        self.delivered.append((title, message))


@pytest.fixture
def notify():
    return Recorder()


@pytest.fixture
def reminder_sync(session, store, remote, online):
    from stora.sync import ReminderSync

    return ReminderSync(session, store, remote, online)


class TestIsDue:
    """Tests for due evaluation."""

    def test_periodic_due_after_whole_months(self):
        from stora.schema import ReminderSetting
        from stora.sync import is_due

        reminder = ReminderSetting(periodic_months=3, created_at=millis(2024, 1, 15, 10))

        assert not is_due(reminder, millis(2024, 4, 15, 9, 59))
        assert is_due(reminder, millis(2024, 4, 15, 10))

    def test_periodic_counts_from_last_firing(self):
        from stora.schema import ReminderSetting
        from stora.sync import is_due

        reminder = ReminderSetting(
            periodic_months=1,
            created_at=millis(2024, 1, 1),
            last_notified=millis(2024, 3, 31, 8),
        )

        assert not is_due(reminder, millis(2024, 4, 29, 8))
        assert is_due(reminder, millis(2024, 4, 30, 8))

    def test_inactive_or_deleted_never_due(self):
        from stora.schema import ReminderSetting
        from stora.sync import is_due

        inactive = ReminderSetting(created_at=millis(2023, 1, 1), is_active=False)
        deleted = ReminderSetting(created_at=millis(2023, 1, 1), is_deleted=True)

        assert not is_due(inactive, millis(2024, 5, 1))
        assert not is_due(deleted, millis(2024, 5, 1))

    def test_custom_due_once(self):
        from stora.schema import ReminderSetting
        from stora.sync import is_due

        reminder = ReminderSetting(reminder_type="custom", scheduled_at=millis(2024, 5, 1, 9))

        assert not is_due(reminder, millis(2024, 5, 1, 8))
        assert is_due(reminder, millis(2024, 5, 1, 9))
        reminder.last_notified = millis(2024, 5, 1, 9, 1)
        assert not is_due(reminder, millis(2024, 5, 2))

    def test_custom_without_instant_never_due(self):
        from stora.schema import ReminderSetting
        from stora.sync import is_due

        assert not is_due(ReminderSetting(reminder_type="custom"), millis(2030, 1, 1))


class TestFiring:
    """Tests for on-device firing."""

    @pytest.mark.asyncio
    async def test_periodic_fire(self, session, store, notify):
        from stora.schema import Family, NotificationStatus, ReminderSetting
        from stora.sync import fire
        from stora.sync.reminders import PERIODIC_MESSAGE

        reminder = ReminderSetting(owner_id=session.owner_id, created_at=millis(2024, 1, 1))
        await store.upsert(reminder)
        now = millis(2024, 5, 1, 9)

        entry = await fire(store, session, reminder, notify, now)

        assert notify.delivered == [(reminder.title, PERIODIC_MESSAGE)]
        assert entry.is_locally_created
        assert entry.needs_sync
        assert entry.status == NotificationStatus.SENT
        assert entry.related_reminder_id == reminder.id
        stored = await store.get(Family.REMINDERS, reminder.id)
        assert stored.last_notified == now
        assert not stored.is_deleted

    @pytest.mark.asyncio
    async def test_custom_fire_without_server_copy_is_purged(self, session, store, notify):
        from stora.schema import Family, ReminderSetting
        from stora.sync import fire

        reminder = ReminderSetting(
            owner_id=session.owner_id, reminder_type="custom", title="Audit", scheduled_at=millis(2024, 5, 1, 9)
        )
        await store.upsert(reminder)

        await fire(store, session, reminder, notify, millis(2024, 5, 1, 9))

        assert notify.delivered == [("Audit", "Waktu pengingat: Audit")]
        assert await store.get(Family.REMINDERS, reminder.id) is None

    @pytest.mark.asyncio
    async def test_custom_fire_with_server_copy_leaves_tombstone(self, session, store, notify):
        from stora.schema import Family, ReminderSetting
        from stora.sync import fire

        reminder = ReminderSetting(
            owner_id=session.owner_id, remote_id=5, reminder_type="custom",
            scheduled_at=millis(2024, 5, 1, 9), needs_sync=False, is_synced=True,
        )
        await store.upsert(reminder)

        await fire(store, session, reminder, notify, millis(2024, 5, 1, 9))

        stored = await store.get(Family.REMINDERS, reminder.id)
        assert stored.is_deleted
        assert stored.needs_sync

    @pytest.mark.asyncio
    async def test_async_notifier_is_awaited(self, session, store):
        from stora.schema import ReminderSetting
        from stora.sync import fire

        delivered = []

        async def push(title, message):
            delivered.append(title)

        reminder = ReminderSetting(owner_id=session.owner_id, created_at=millis(2024, 1, 1))
        await fire(store, session, reminder, push, millis(2024, 5, 1))

        assert delivered == [reminder.title]

    @pytest.mark.asyncio
    async def test_evaluate_fires_only_offline(self, session, store, notify):
        from stora.schema import Family, ReminderSetting
        from stora.sync import evaluate_due_reminders

        await store.upsert(ReminderSetting(owner_id=session.owner_id, created_at=millis(2024, 1, 1)))
        now = millis(2024, 5, 1, 9)

        assert await evaluate_due_reminders(store, session, notify, online=True, now=now) == []
        assert notify.delivered == []

        fired = await evaluate_due_reminders(store, session, notify, online=False, now=now)
        again = await evaluate_due_reminders(store, session, notify, online=False, now=now + 60_000)

        assert len(fired) == 1
        assert again == []
        assert len(await store.list(Family.NOTIFICATIONS, session.owner_id)) == 1


class TestDedup:
    """At most one history entry per reminder per day."""

    @pytest.mark.asyncio
    async def test_same_reminder_same_day(self, session, store):
        from stora.schema import Family, NotificationOrigin, ReminderSetting
        from stora.sync import record_notification

        reminder = ReminderSetting(owner_id=session.owner_id)
        first = await record_notification(
            store, session, title="T", message="M", origin=NotificationOrigin.LOCAL_FIRE,
            fired_at=millis(2024, 5, 1, 8), reminder=reminder,
        )
        second = await record_notification(
            store, session, title="T", message="M", origin=NotificationOrigin.BACKGROUND_CHECK,
            fired_at=millis(2024, 5, 1, 20), reminder=reminder,
        )
        await record_notification(
            store, session, title="T", message="M", origin=NotificationOrigin.LOCAL_FIRE,
            fired_at=millis(2024, 5, 2, 8), reminder=reminder,
        )

        assert second.id == first.id
        assert len(await store.list(Family.NOTIFICATIONS, session.owner_id)) == 2

    @pytest.mark.asyncio
    async def test_text_match_without_reminder(self, session, store):
        from stora.repositories import NotificationRepository
        from stora.schema import Family

        repository = NotificationRepository(session, store)
        await repository.record_local_notification("T", "M", fired_at=millis(2024, 5, 1, 8))
        await repository.record_local_notification("T", "M", fired_at=millis(2024, 5, 1, 9))
        await repository.record_local_notification("T", "other", fired_at=millis(2024, 5, 1, 9))

        assert len(await store.list(Family.NOTIFICATIONS, session.owner_id)) == 2

    @pytest.mark.asyncio
    async def test_loan_notifications_skip_text_match(self, session, store):
        from stora.repositories import NotificationRepository
        from stora.schema import Family

        repository = NotificationRepository(session, store)
        await repository.record_local_notification("Jatuh tempo", "Budi", related_loan_id=1,
                                                   fired_at=millis(2024, 5, 1, 8))
        await repository.record_local_notification("Jatuh tempo", "Budi", related_loan_id=2,
                                                   fired_at=millis(2024, 5, 1, 8))

        assert len(await store.list(Family.NOTIFICATIONS, session.owner_id)) == 2

    @pytest.mark.asyncio
    async def test_push_delivery_replaces_local_copy(self, session, store, notify):
        from stora.repositories import NotificationRepository
        from stora.schema import Family, ReminderSetting
        from stora.sync import fire

        reminder = ReminderSetting(
            owner_id=session.owner_id, remote_id=5, created_at=millis(2024, 1, 1),
            needs_sync=False, is_synced=True,
        )
        await store.upsert(reminder)
        local = await fire(store, session, reminder, notify, millis(2024, 5, 1, 8))

        pushed = await NotificationRepository(session, store).record_push_notification(
            "Pengingat", "Cek inventory", server_reminder_id=5, fired_at=millis(2024, 5, 1, 8, 5)
        )

        entries = await store.list(Family.NOTIFICATIONS, session.owner_id)
        assert [e.id for e in entries] == [pushed.id]
        assert pushed.id != local.id
        assert pushed.is_locally_created is False
        assert pushed.needs_sync is False

    @pytest.mark.asyncio
    async def test_second_push_delivery_is_ignored(self, session, store):
        from stora.repositories import NotificationRepository
        from stora.schema import Family

        repository = NotificationRepository(session, store)
        first = await repository.record_push_notification("P", "M", server_reminder_id=5,
                                                          fired_at=millis(2024, 5, 1, 8))
        second = await repository.record_push_notification("P", "M", server_reminder_id=5,
                                                           fired_at=millis(2024, 5, 1, 9))

        assert second.id == first.id
        assert len(await store.list(Family.NOTIFICATIONS, session.owner_id)) == 1


class TestReminderSync:
    """Tests for reminder and history sync."""

    @pytest.mark.asyncio
    async def test_local_history_is_posted(self, session, store, backend, reminder_sync):
        from stora.repositories import NotificationRepository
        from stora.schema import Family

        repository = NotificationRepository(session, store)
        local = await repository.record_local_notification("T", "M")
        await repository.record_push_notification("P", "Q", server_reminder_id=9)

        result = await reminder_sync.sync_to_remote()

        assert result.succeeded == 1
        assert len(backend.calls("POST", "notifications/history")) == 1
        stored = await store.get(Family.NOTIFICATIONS, local.id)
        assert stored.remote_id in backend.notifications
        assert stored.needs_sync is False

    @pytest.mark.asyncio
    async def test_fired_custom_reminder_deleted_on_server(self, session, store, backend, reminder_sync, notify):
        from stora.schema import Family
        from stora.sync import evaluate_due_reminders

        remote_id = backend.add_reminder(
            reminder_type="custom", title="Audit", periodic_months=None,
            scheduled_datetime="2024-05-01 09:00:00",
        )
        await reminder_sync.sync_from_remote()

        fired = await evaluate_due_reminders(store, session, notify, online=False, now=millis(2024, 5, 1, 9, 30))
        assert len(fired) == 1

        await reminder_sync.sync_to_remote()

        assert remote_id not in backend.reminders
        assert await store.list(Family.REMINDERS, session.owner_id, include_deleted=True) == []
        (posted,) = backend.notifications.values()
        assert posted["ID_Reminder"] == remote_id
        assert posted["Judul"] == "Audit"

    @pytest.mark.asyncio
    async def test_server_copy_replaces_offline_firing(self, session, store, backend, reminder_sync, notify):
        from stora.schema import Family
        from stora.sync import evaluate_due_reminders

        remote_id = backend.add_reminder()
        await reminder_sync.sync_from_remote()
        await evaluate_due_reminders(store, session, notify, online=False, now=millis(2024, 5, 1, 9))
        server_entry = backend.add_notification(
            ID_Reminder=remote_id, Judul="Pengingat", Pesan="Cek", Tanggal="2024-05-01 10:00:00"
        )

        await reminder_sync.sync_from_remote()

        entries = await store.list(Family.NOTIFICATIONS, session.owner_id)
        assert [e.remote_id for e in entries] == [server_entry]
        assert entries[0].server_reminder_id == remote_id

    @pytest.mark.asyncio
    async def test_pulled_firing_kept_by_reminder(self, session, store, backend, reminder_sync, notify):
        from stora.schema import Family
        from stora.sync import evaluate_due_reminders

        backend.add_reminder()
        await reminder_sync.sync_from_remote()
        now = millis(2024, 5, 1, 9)
        await evaluate_due_reminders(store, session, notify, online=False, now=now)

        await reminder_sync.sync_from_remote()

        (reminder,) = await store.list(Family.REMINDERS, session.owner_id)
        assert reminder.last_notified == now

    @pytest.mark.asyncio
    async def test_read_state_survives_pull(self, session, store, backend, reminder_sync):
        from stora.repositories import NotificationRepository
        from stora.schema import Family, NotificationStatus

        backend.add_notification(Judul="A")
        await reminder_sync.sync_from_remote()
        (entry,) = await store.list(Family.NOTIFICATIONS, session.owner_id)

        repository = NotificationRepository(session, store)
        await repository.mark_read(entry.id)
        await reminder_sync.sync_from_remote()

        assert (await store.get(Family.NOTIFICATIONS, entry.id)).status == NotificationStatus.READ
        assert await repository.unread_count() == 0

    @pytest.mark.asyncio
    async def test_history_deleted_on_server_is_purged(self, session, store, backend, reminder_sync):
        from stora.schema import Family

        gone = backend.add_notification(Judul="A")
        backend.add_notification(Judul="B")
        await reminder_sync.sync_from_remote()
        del backend.notifications[gone]

        result = await reminder_sync.sync_from_remote()

        assert result.purged == 1
        assert [e.title for e in await store.list(Family.NOTIFICATIONS, session.owner_id)] == ["B"]

    @pytest.mark.asyncio
    async def test_malformed_history_row_is_skipped(self, session, store, backend, reminder_sync):
        from stora.schema import Family

        kept = backend.add_notification(Judul="A")
        await reminder_sync.sync_from_remote()
        backend.notifications[kept]["Tanggal"] = 1.5
        backend.add_notification(Judul="B", Tanggal=1.5)
        backend.add_notification(Judul="C")

        result = await reminder_sync.sync_from_remote()

        assert result.ok
        assert result.purged == 0
        titles = sorted(e.title for e in await store.list(Family.NOTIFICATIONS, session.owner_id))
        assert titles == ["A", "C"]

    @pytest.mark.asyncio
    async def test_reminder_pull_maps_types(self, session, store, backend, reminder_sync):
        from stora.schema import Family, ReminderType

        backend.add_reminder(periodic_months=6)
        backend.add_reminder(reminder_type="custom", title="Audit", scheduled_datetime="2024-06-01 09:00:00")

        await reminder_sync.sync_from_remote()

        reminders = {r.title: r for r in await store.list(Family.REMINDERS, session.owner_id)}
        assert reminders["Audit"].reminder_type == ReminderType.CUSTOM
        assert reminders["Audit"].scheduled_at == millis(2024, 6, 1, 9)
        periodic = reminders["Pengingat Pengecekan Inventory"]
        assert periodic.periodic_months == 6
        assert periodic.scheduled_at is None

"""Tests for the MongoDB repositories."""

from datetime import datetime, timedelta, timezone

import pytest

from campus_chat.repositories.message_repository import MessageRepository


class InterleavedCollection:
    """Lets another reader stamp the first claimed row just before it is claimed."""

    def __init__(self, inner, repo):
        self._inner = inner
        self._repo = repo

    def __getattr__(self, name):
        return getattr(self._inner, name)

    async def find_one_and_update(self, query, update, **kwargs):
        if not self._repo.stamped_elsewhere:
            await self._inner.update_one({"_id": query["_id"]}, {"$set": {"read_at": datetime.now(timezone.utc)}})
            self._repo.stamped_elsewhere.append(str(query["_id"]))
        return await self._inner.find_one_and_update(query, update, **kwargs)


class ConcurrentlyReadRepository(MessageRepository):

    def __init__(self, db):
        super().__init__(db)
        self.stamped_elsewhere = []

    @property
    def collection(self):
        return InterleavedCollection(self._db["messages"], self)


class TestConversationRepository:

    async def test_get_or_create_is_idempotent_over_unordered_pair(self, conversation_repo):
        first = await conversation_repo.get_or_create_one_to_one("alice", "bob")
        again = await conversation_repo.get_or_create_one_to_one("alice", "bob")
        reversed_pair = await conversation_repo.get_or_create_one_to_one("bob", "alice")

        assert first["_id"] == again["_id"] == reversed_pair["_id"]
        assert await conversation_repo.collection.count_documents({}) == 1

    async def test_new_conversation_has_empty_summary(self, conversation_repo):
        convo = await conversation_repo.get_or_create_one_to_one("alice", "bob")

        assert convo["participant1_id"] == "alice"
        assert convo["participant2_id"] == "bob"
        assert convo["pair_key"] == "alice:bob"
        assert convo["last_message"] is None
        assert convo["last_message_at"] is None

    async def test_list_for_user_covers_both_participant_slots(self, conversation_repo):
        a = await conversation_repo.get_or_create_one_to_one("alice", "bob")
        b = await conversation_repo.get_or_create_one_to_one("carol", "alice")
        await conversation_repo.get_or_create_one_to_one("bob", "carol")

        ids = {c["_id"] for c in await conversation_repo.list_for_user("alice")}

        assert ids == {a["_id"], b["_id"]}

    async def test_list_for_user_orders_by_latest_activity(self, conversation_repo, message_repo):
        older = await conversation_repo.get_or_create_one_to_one("alice", "bob")
        newer = await conversation_repo.get_or_create_one_to_one("alice", "carol")
        saved = await message_repo.save_message(older["_id"], "bob", "ping")
        await conversation_repo.update_on_new_message(older["_id"], "ping", saved["created_at"] + timedelta(seconds=5))

        items = await conversation_repo.list_for_user("alice")

        assert [c["_id"] for c in items] == [older["_id"], newer["_id"]]
        assert items[0]["last_message"] == "ping"

    async def test_conversations_without_messages_sort_last_newest_first(self, conversation_repo, message_repo):
        active = await conversation_repo.get_or_create_one_to_one("alice", "bob")
        quiet_old = await conversation_repo.get_or_create_one_to_one("alice", "carol")
        quiet_new = await conversation_repo.get_or_create_one_to_one("alice", "dave")
        saved = await message_repo.save_message(active["_id"], "bob", "ping")
        await conversation_repo.update_on_new_message(active["_id"], "ping", saved["created_at"])

        items = await conversation_repo.list_for_user("alice")

        assert [c["_id"] for c in items] == [active["_id"], quiet_new["_id"], quiet_old["_id"]]
        assert items[1]["last_message_at"] is None

    @pytest.mark.parametrize("bad_id", ["not-an-object-id", "", "123"])
    async def test_get_with_malformed_id_returns_none(self, conversation_repo, bad_id):
        assert await conversation_repo.get(bad_id) is None


class TestMessageRepository:

    async def test_history_is_ascending_by_creation(self, message_repo):
        for text in ("one", "two", "three"):
            await message_repo.save_message("c1", "alice", text)
        await message_repo.save_message("c2", "alice", "elsewhere")

        history = await message_repo.get_messages_by_conversation("c1")

        assert [m["content"] for m in history] == ["one", "two", "three"]
        assert all(isinstance(m["_id"], str) for m in history)

    async def test_count_unread_counts_only_counterpart_messages(self, message_repo):
        await message_repo.save_message("c1", "alice", "mine")
        await message_repo.save_message("c1", "bob", "theirs 1")
        await message_repo.save_message("c1", "bob", "theirs 2")

        assert await message_repo.count_unread("c1", "alice") == 2
        assert await message_repo.count_unread("c1", "bob") == 1

    async def test_mark_read_touches_exactly_counterpart_unread(self, message_repo):
        mine = await message_repo.save_message("c1", "alice", "mine")
        theirs = await message_repo.save_message("c1", "bob", "theirs")
        other_convo = await message_repo.save_message("c2", "bob", "other")

        updated = await message_repo.mark_read("c1", "alice")

        assert [m["_id"] for m in updated] == [theirs["_id"]]
        assert updated[0]["read_at"] is not None
        rows = {m["_id"]: m for m in await message_repo.get_messages_by_conversation("c1")}
        assert rows[mine["_id"]]["read_at"] is None
        other = await message_repo.get_messages_by_conversation("c2")
        assert other[0]["_id"] == other_convo["_id"]
        assert other[0]["read_at"] is None

    async def test_mark_read_skips_rows_stamped_by_concurrent_reader(self, db):
        repo = ConcurrentlyReadRepository(db)
        first = await repo.save_message("c1", "bob", "one")
        second = await repo.save_message("c1", "bob", "two")

        updated = await repo.mark_read("c1", "alice")

        assert [m["_id"] for m in updated] == [second["_id"]]
        assert repo.stamped_elsewhere == [first["_id"]]

    async def test_mark_read_is_noop_when_nothing_pending(self, message_repo):
        await message_repo.save_message("c1", "bob", "theirs")
        await message_repo.mark_read("c1", "alice")

        assert await message_repo.mark_read("c1", "alice") == []
        assert await message_repo.count_unread("c1", "alice") == 0


class TestProfileRepository:

    async def test_get_many_returns_only_known_profiles(self, profile_repo):
        await profile_repo.upsert("bob", "Bob Mokoena", "https://cdn.example/bob.png")

        profiles = await profile_repo.get_many(["bob", "ghost", "bob"])

        assert set(profiles) == {"bob"}
        assert profiles["bob"]["full_name"] == "Bob Mokoena"

    async def test_get_many_with_no_ids(self, profile_repo):
        assert await profile_repo.get_many([]) == {}


class TestDeviceRepository:

    async def test_register_is_upsert(self, device_repo):
        await device_repo.register("bob", "fcm", "tok-1")
        await device_repo.register("bob", "fcm", "tok-1")
        await device_repo.register("bob", "webpush", "tok-2")

        assert [t["token"] for t in await device_repo.get_tokens("bob", platform="fcm")] == ["tok-1"]
        assert len(await device_repo.get_tokens("bob")) == 2

    async def test_remove_token(self, device_repo):
        await device_repo.register("bob", "fcm", "tok-1")

        assert await device_repo.remove_token("tok-1") == 1
        assert await device_repo.get_tokens("bob") == []

"""
Shared pytest fixtures.

MongoDB is replaced by mongomock-motor and realtime delivery by the
in-process LocalBus, so the suite runs without external services.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from mongomock_motor import AsyncMongoMockClient

from campus_chat.repositories.conversation_repository import ConversationRepository
from campus_chat.repositories.device_repository import DeviceRepository
from campus_chat.repositories.message_repository import MessageRepository
from campus_chat.repositories.notification_repository import NotificationRepository
from campus_chat.repositories.profile_repository import ProfileRepository
from campus_chat.services.chat_service import ChatService
from campus_chat.services.notification_service import NotificationService
from campus_chat.utils.realtime_bus import LocalBus


class RecordingPush:
    """Push provider double that records what would have been sent."""

    def __init__(self):
        self.sent = []

    async def send(self, tokens, title, body, data=None):
        self.sent.append({"tokens": list(tokens), "title": title, "body": body, "data": data or {}})
        return len(tokens)


class Recorder:
    """Collects raw bus messages for a channel."""

    def __init__(self):
        self.messages = []

    async def __call__(self, message):
        self.messages.append(message)


# =============================================================================
# Storage and bus
# =============================================================================


@pytest.fixture
async def db():
    """A fresh mock database with the production indexes."""
    database = AsyncMongoMockClient()["campus_chat_test"]
    await ConversationRepository(database).ensure_indexes()
    await MessageRepository(database).ensure_indexes()
    await NotificationRepository(database).ensure_indexes()
    await DeviceRepository(database).ensure_indexes()
    return database


@pytest.fixture
def bus():
    return LocalBus()


@pytest.fixture
def push():
    return RecordingPush()


@pytest.fixture
def recorder():
    return Recorder()


# =============================================================================
# Repositories and services
# =============================================================================


@pytest.fixture
def conversation_repo(db):
    return ConversationRepository(db)


@pytest.fixture
def message_repo(db):
    return MessageRepository(db)


@pytest.fixture
def profile_repo(db):
    return ProfileRepository(db)


@pytest.fixture
def device_repo(db):
    return DeviceRepository(db)


@pytest.fixture
def notification_repo(db):
    return NotificationRepository(db)


@pytest.fixture
def notification_service(notification_repo, device_repo, bus, push):
    return NotificationService(notification_repo, device_repo, bus, push)


@pytest.fixture
def chat_service(message_repo, conversation_repo, profile_repo, bus):
    return ChatService(message_repo, conversation_repo, profile_repo, bus)


@pytest.fixture
async def conversation(chat_service):
    """A direct conversation between alice and bob."""
    return await chat_service.get_or_create_conversation("alice", "bob")

class ChatError(Exception):
    """Base class for domain errors raised by the services."""


class ConversationNotFoundError(ChatError, LookupError):

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class NotParticipantError(ChatError, PermissionError):

    def __init__(self, conversation_id: str, user_id: str) -> None:
        super().__init__(f"User {user_id} is not a participant of conversation {conversation_id}")
        self.conversation_id = conversation_id
        self.user_id = user_id


class NotificationNotFoundError(ChatError, LookupError):

    def __init__(self, notification_id: str) -> None:
        super().__init__(f"Notification {notification_id} not found")
        self.notification_id = notification_id

"""Internal staff messages store."""
from typing import List

from models.message import Message
from stores.base import EntityStore, StoreResult


class MessageStore(EntityStore[Message]):
    entity_class = Message

    def send(
        self,
        from_user_id: str,
        to_user_id: str,
        subject: str,
        content: str,
        from_name: str = "",
        to_name: str = "",
    ) -> StoreResult:
        message = Message(
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            subject=subject,
            content=content,
            from_name=from_name,
            to_name=to_name,
        )
        return self.add(message, actor=from_user_id)

    def mark_as_read(self, message_id: str, actor: str = "") -> StoreResult:
        return self.update(message_id, {"read": True}, actor=actor)

    def inbox(self, user_id: str) -> List[Message]:
        return [m for m in self.items if m.to_user_id == user_id]

    def sent(self, user_id: str) -> List[Message]:
        return [m for m in self.items if m.from_user_id == user_id]

    def unread_count(self, user_id: str) -> int:
        return sum(1 for m in self.inbox(user_id) if not m.read)

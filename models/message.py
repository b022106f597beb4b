from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import logging
import threading

from utils.helpers import generate_unique_id


class SenderType(Enum):
    USER = "user"
    CUSTOMER = "customer"
    BOT = "bot"
    AGENT = "agent"
    SYSTEM = "system"


# Senders whose messages get an automated reply
CUSTOMER_SENDERS = {SenderType.USER, SenderType.CUSTOMER}


@dataclass
class ChatMessage:
    conversation_id: str
    sender_type: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: generate_unique_id("msg_"))
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'conversation_id': self.conversation_id,
            'sender_type': self.sender_type,
            'content': self.content,
            'metadata': self.metadata,
            'created_at': self.created_at.isoformat()
        }


class InMemoryMessageStore:
    """Message storage keyed by conversation, bounded in both dimensions"""

    def __init__(self, max_conversations: int = 10000, max_messages_per_conversation: int = 500):
        self.max_conversations = max_conversations
        self.max_messages_per_conversation = max_messages_per_conversation
        self._messages: "OrderedDict[str, List[ChatMessage]]" = OrderedDict()
        self._lock = threading.Lock()

    def create_message(self, conversation_id: str, sender_type: str, content: str,
                       metadata: Optional[Dict[str, Any]] = None) -> ChatMessage:
        message = ChatMessage(
            conversation_id=conversation_id,
            sender_type=sender_type,
            content=content,
            metadata=metadata or {}
        )
        with self._lock:
            messages = self._messages.setdefault(conversation_id, [])
            messages.append(message)
            if len(messages) > self.max_messages_per_conversation:
                del messages[:len(messages) - self.max_messages_per_conversation]

            # Least recently written conversations go first
            self._messages.move_to_end(conversation_id)
            while len(self._messages) > self.max_conversations:
                evicted, _ = self._messages.popitem(last=False)
                logging.info(f"Evicted message history for {evicted}")

        logging.debug(f"Stored {sender_type} message {message.id} in {conversation_id}")
        return message

    def get_messages(self, conversation_id: str) -> List[ChatMessage]:
        with self._lock:
            return list(self._messages.get(conversation_id, []))

    def delete_conversation(self, conversation_id: str) -> int:
        with self._lock:
            removed = self._messages.pop(conversation_id, [])
        return len(removed)

"""
Integration interfaces and contracts between the engine and its collaborators
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, List
import logging

from .engine_models import ConversationEvent, FlowAction, MessageAnalysis


logger = logging.getLogger(__name__)


class IFlowActionHandler(ABC):
    """Side-effect port the flow engine calls for every declared flow action"""

    @abstractmethod
    def handle_action(self, action: FlowAction, conversation_id: str,
                      analysis: MessageAnalysis) -> None:
        """Carry out a single flow action for a conversation"""
        pass


class EventBus:
    """Event bus for communication between the engine and its hosts"""

    def __init__(self, max_history: int = 10000):
        self.subscribers: Dict[str, List[Callable]] = {}
        self.event_history: List[ConversationEvent] = []
        self.max_history = max_history

    def subscribe(self, event_type: str, handler: Callable) -> None:
        """Subscribe to events of a specific type ("*" receives everything)"""
        if event_type not in self.subscribers:
            self.subscribers[event_type] = []
        self.subscribers[event_type].append(handler)

    def publish(self, event: ConversationEvent) -> None:
        """Publish an event to all subscribers"""
        self.event_history.append(event)
        if len(self.event_history) > self.max_history:
            del self.event_history[:len(self.event_history) - self.max_history]

        handlers = self.subscribers.get(event.event_type, []) + self.subscribers.get("*", [])
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type}: {e}")

        event.processed = True

    def get_events_for_conversation(self, conversation_id: str) -> List[ConversationEvent]:
        """Get all events for a specific conversation"""
        return [event for event in self.event_history if event.conversation_id == conversation_id]

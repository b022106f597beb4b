"""
Message Service for customer chat

Stores inbound messages, asks the response engine for an automated reply
to customer messages and records analytics about each exchange.
"""

import logging
from typing import Any, Dict, List, Optional

from models import CUSTOMER_SENDERS, ChatMessage, InMemoryMessageStore, SenderType
from services.analytics_tracker import AnalyticsTracker
from services.response_engine import AIResponseManager, EngineResponse, ResponseContext, ResponseSource
from utils import ValidationError, sanitize_text, validate_email

LOW_CONFIDENCE_THRESHOLD = 0.7
MISSING_INFO_THRESHOLD = 0.5


class MessageService:
    def __init__(self, response_manager: AIResponseManager, message_store: InMemoryMessageStore,
                 analytics_tracker: AnalyticsTracker, max_message_length: int = 4000,
                 default_organization_id: str = 'default'):
        """Initialize message service"""
        self.response_manager = response_manager
        self.message_store = message_store
        self.analytics = analytics_tracker
        self.max_message_length = max_message_length
        self.default_organization_id = default_organization_id
        self.logger = logging.getLogger(__name__)

        self.logger.info("Message Service initialized")

    def send_message(self, conversation_id: str, sender_type: str, content: str,
                     customer_name: Optional[str] = None, customer_email: Optional[str] = None,
                     organization_id: Optional[str] = None) -> Dict[str, Any]:
        """Store a message and, for customer senders, the automated reply"""
        sender = self._validate(conversation_id, sender_type, content, organization_id)
        organization_id = organization_id or self.default_organization_id

        user_message = self.message_store.create_message(conversation_id, sender.value, content)
        self._track(conversation_id, 'message_sent', {
            'sender_type': sender.value,
            'length': len(content)
        }, organization_id)

        result = {
            'message': user_message.to_dict(),
            'bot_message': None,
            'response': None,
            'escalated': False
        }

        if sender not in CUSTOMER_SENDERS:
            return result

        context = ResponseContext(
            customer_name=sanitize_text(customer_name) or None,
            customer_email=customer_email if customer_email and validate_email(customer_email) else None,
            organization_id=organization_id
        )
        response = self.response_manager.generate_automated_response(content, conversation_id, context)

        bot_message = self.message_store.create_message(
            conversation_id,
            SenderType.BOT.value,
            response.response,
            self._bot_metadata(response)
        )
        self._record_bot_analytics(conversation_id, content, response, organization_id)

        result['bot_message'] = bot_message.to_dict()
        result['response'] = response.to_dict()
        result['escalated'] = response.should_escalate
        return result

    def deliver_proactive_message(self, conversation_id: str, response: EngineResponse) -> ChatMessage:
        """Store a proactive nudge produced by the background sweep"""
        message = self.message_store.create_message(
            conversation_id,
            SenderType.BOT.value,
            response.response,
            self._bot_metadata(response)
        )
        self.logger.info(f"Delivered proactive message to {conversation_id}")
        return message

    def get_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        return [message.to_dict() for message in self.message_store.get_messages(conversation_id)]

    def clear_conversation(self, conversation_id: str) -> Dict[str, Any]:
        removed = self.message_store.delete_conversation(conversation_id)
        session_cleared = self.response_manager.clear_conversation(conversation_id)
        self.logger.info(f"Cleared conversation {conversation_id} ({removed} messages)")
        return {'messages_removed': removed, 'session_cleared': session_cleared}

    def _validate(self, conversation_id: str, sender_type: str, content: str,
                  organization_id: Optional[str] = None) -> SenderType:
        if not isinstance(conversation_id, str) or not conversation_id.strip():
            raise ValidationError("conversation_id is required")
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("content is required")
        if len(content) > self.max_message_length:
            raise ValidationError(f"content exceeds {self.max_message_length} characters")
        if organization_id is not None and not isinstance(organization_id, str):
            raise ValidationError("organization_id must be a string")
        try:
            return SenderType(sender_type)
        except ValueError:
            valid = [s.value for s in SenderType]
            raise ValidationError(f"Invalid sender_type. Must be one of: {valid}")

    @staticmethod
    def _bot_metadata(response: EngineResponse) -> Dict[str, Any]:
        return {
            'source': response.source,
            'confidence': response.confidence,
            'intent': response.intent,
            'should_escalate': response.should_escalate,
            'suggestions': list(response.suggestions),
            'actions': list(response.actions),
            'flow_name': response.flow_name,
            **response.metadata
        }

    def _record_bot_analytics(self, conversation_id: str, content: str, response: EngineResponse,
                              organization_id: str) -> None:
        """Analytics must never break message delivery"""
        try:
            intent = response.intent or 'general'
            self.analytics.track_event(conversation_id, 'bot_response', {
                'source': response.source,
                'confidence': response.confidence,
                'intent': intent
            }, organization_id)

            if response.confidence < LOW_CONFIDENCE_THRESHOLD:
                self.analytics.track_bot_confidence(conversation_id, response.confidence, intent)

            if (response.confidence < MISSING_INFO_THRESHOLD
                    or response.source == ResponseSource.INTELLIGENT_FALLBACK.value):
                self.analytics.track_missing_info(conversation_id, intent, content)

            if response.should_escalate:
                self._track(conversation_id, 'escalation', {
                    'intent': intent,
                    'source': response.source
                }, organization_id)

            order_numbers = response.metadata.get('entities', {}).get('order_numbers', [])
            if order_numbers:
                self._track(conversation_id, 'order_inquiry', {'order_numbers': order_numbers},
                            organization_id)

            for topic in response.metadata.get('topics', []):
                self.analytics.track_category_discussion(conversation_id, topic)
        except Exception as e:
            self.logger.error(f"Error recording analytics for {conversation_id}: {e}")

    def _track(self, conversation_id: str, event_type: str, data: Dict[str, Any],
               organization_id: str) -> None:
        try:
            self.analytics.track_event(conversation_id, event_type, data, organization_id)
        except Exception as e:
            self.logger.error(f"Error tracking {event_type} for {conversation_id}: {e}")

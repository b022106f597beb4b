"""
Tests for the chat message service and analytics tracking
"""

import unittest
from unittest.mock import Mock

from models import InMemoryMessageStore
from services import AnalyticsTracker, MessageService
from services.response_engine import EngineResponse, ResponseTemplates
from utils import ValidationError
from test import (
    BaseTestCase,
    FakeClock,
    MockServices,
    GREETING_MESSAGE,
    ESCALATION_MESSAGE,
    ORDER_MESSAGE,
    UNMATCHED_MESSAGE
)


class TestMessageService(BaseTestCase):

    def setUp(self):
        super().setUp()
        self.clock = FakeClock()
        self.manager = self.create_manager(self.clock)
        self.store = InMemoryMessageStore()
        self.analytics = AnalyticsTracker()
        self.manager.event_bus.subscribe('*', self.analytics.handle_engine_event)
        self.service = MessageService(self.manager, self.store, self.analytics, max_message_length=200)

    def event_types(self, conversation_id='conv-1'):
        return [event.event_type for event in self.analytics.get_events(conversation_id)]

    def test_customer_message_gets_bot_reply(self):
        result = self.service.send_message('conv-1', 'customer', GREETING_MESSAGE)

        self.assert_api_response_valid(result, ['message', 'bot_message', 'response', 'escalated'])
        self.assertEqual(result['message']['sender_type'], 'customer')
        self.assertEqual(result['bot_message']['sender_type'], 'bot')
        self.assertTrue(result['bot_message']['content'].startswith("Hello"))
        self.assertEqual(result['bot_message']['metadata']['source'], 'automated_flow')
        self.assertEqual(result['bot_message']['metadata']['confidence'], 0.9)
        self.assertFalse(result['escalated'])

        messages = self.service.get_messages('conv-1')
        self.assertEqual([m['sender_type'] for m in messages], ['customer', 'bot'])
        self.assertEqual(self.event_types(), ['message_sent', 'flow_action', 'bot_response'])

    def test_agent_message_is_only_stored(self):
        result = self.service.send_message('conv-1', 'agent', "I'll take it from here")

        self.assertIsNone(result['bot_message'])
        self.assertEqual(len(self.store.get_messages('conv-1')), 1)
        self.assertEqual(self.event_types(), ['message_sent'])
        self.assertIsNone(self.manager.state_store.get('conv-1'))

    def test_customer_name_is_used(self):
        result = self.service.send_message('conv-1', 'user', GREETING_MESSAGE, customer_name='  <Ana> ')
        self.assertTrue(result['bot_message']['content'].startswith("Hello Ana!"))

    def test_validation(self):
        invalid = [
            ('', 'customer', 'hi'),
            (None, 'customer', 'hi'),
            ('conv-1', 'customer', '   '),
            ('conv-1', 'customer', None),
            ('conv-1', 'robot', 'hi'),
            ('conv-1', 'customer', 'x' * 201),
        ]
        for conversation_id, sender_type, content in invalid:
            with self.subTest(conversation_id=conversation_id, sender_type=sender_type):
                with self.assertRaises(ValidationError):
                    self.service.send_message(conversation_id, sender_type, content)
        with self.assertRaises(ValidationError):
            self.service.send_message('conv-1', 'customer', GREETING_MESSAGE, organization_id=['acme'])
        self.assertEqual(self.analytics.get_events(), [])

    def test_low_confidence_is_tracked(self):
        self.service.send_message('conv-1', 'customer', UNMATCHED_MESSAGE)
        events = self.analytics.get_events('conv-1', 'bot_confidence')
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].event_data, {'confidence': 0.6, 'intent': 'general'})
        self.assertNotIn('missing_info_detected', self.event_types())

    def test_escalation_is_tracked(self):
        result = self.service.send_message('conv-1', 'customer', ESCALATION_MESSAGE)
        self.assertTrue(result['escalated'])
        self.assertIn('escalation', self.event_types())

    def test_order_and_category_tracking(self):
        self.service.send_message('conv-1', 'customer', ORDER_MESSAGE)
        order_events = self.analytics.get_events('conv-1', 'order_inquiry')
        self.assertEqual(order_events[0].event_data['order_numbers'], ['ORD123456'])

        self.service.send_message('conv-2', 'customer', "I need a refund for this charge")
        categories = self.analytics.get_events('conv-2', 'category_discussed')
        self.assertEqual([event.event_data['category'] for event in categories], ['billing'])

    def test_fallback_is_tracked_as_missing_info(self):
        manager = self.create_manager(self.clock, analyzer=MockServices.create_failing_analyzer())
        manager.event_bus.subscribe('*', self.analytics.handle_engine_event)
        service = MessageService(manager, self.store, self.analytics)

        result = service.send_message('conv-9', 'customer', UNMATCHED_MESSAGE)
        self.assertEqual(result['response']['source'], 'intelligent_fallback')
        counts = self.analytics.get_event_counts('conv-9')
        self.assertEqual(counts['missing_info_detected'], 1)
        self.assertEqual(counts['bot_confidence'], 1)
        self.assertEqual(counts['fallback_used'], 1)

    def test_analytics_failures_do_not_block_replies(self):
        analytics = MockServices.create_mock_analytics()
        analytics.track_event.side_effect = RuntimeError("analytics offline")
        service = MessageService(self.manager, self.store, analytics)

        result = service.send_message('conv-1', 'customer', GREETING_MESSAGE)
        self.assertIsNotNone(result['bot_message'])
        self.assertEqual(len(self.store.get_messages('conv-1')), 2)

    def test_deliver_proactive_message(self):
        response = EngineResponse(response=ResponseTemplates.PROACTIVE, confidence=0.8,
                                  source='proactive_engagement', type='abandonment_recovery')
        message = self.service.deliver_proactive_message('conv-1', response)
        self.assertEqual(message.sender_type, 'bot')
        self.assertEqual(message.metadata['source'], 'proactive_engagement')

    def test_clear_conversation(self):
        self.service.send_message('conv-1', 'customer', GREETING_MESSAGE)
        result = self.service.clear_conversation('conv-1')
        self.assertEqual(result, {'messages_removed': 2, 'session_cleared': True})
        self.assertEqual(self.service.get_messages('conv-1'), [])


class TestInMemoryMessageStore(BaseTestCase):

    def test_history_per_conversation_is_bounded(self):
        store = InMemoryMessageStore(max_messages_per_conversation=3)
        for index in range(5):
            store.create_message('conv-1', 'customer', f'message {index}')
        self.assertEqual([m.content for m in store.get_messages('conv-1')],
                         ['message 2', 'message 3', 'message 4'])

    def test_least_recent_conversation_is_evicted(self):
        store = InMemoryMessageStore(max_conversations=2)
        store.create_message('conv-1', 'customer', 'first')
        store.create_message('conv-2', 'customer', 'second')
        store.create_message('conv-1', 'customer', 'third')
        store.create_message('conv-3', 'customer', 'fourth')

        self.assertEqual(store.get_messages('conv-2'), [])
        self.assertEqual(len(store.get_messages('conv-1')), 2)
        self.assertEqual(len(store.get_messages('conv-3')), 1)


class TestAnalyticsTracker(BaseTestCase):

    def setUp(self):
        super().setUp()
        self.tracker = AnalyticsTracker(max_events=5)

    def test_confidence_summary(self):
        for confidence in (0.9, 0.6, 0.5, 0.8):
            self.tracker.track_event('conv-1', 'bot_response', {'confidence': confidence})

        summary = self.tracker.get_confidence_summary('conv-1')
        self.assertEqual(summary['count'], 4)
        self.assertEqual(summary['mean'], 0.7)
        self.assertEqual(summary['median'], 0.7)
        self.assertEqual(summary['min'], 0.5)
        self.assertEqual(summary['max'], 0.9)
        self.assertEqual(summary['low_confidence_rate'], 0.5)

    def test_empty_summary(self):
        summary = self.tracker.get_confidence_summary()
        self.assertEqual(summary['count'], 0)
        self.assertIsNone(summary['mean'])

    def test_history_is_bounded(self):
        for index in range(8):
            self.tracker.track_event('conv-1', 'message_sent', {'index': index})
        events = self.tracker.get_events()
        self.assertEqual(len(events), 5)
        self.assertEqual(events[0].event_data['index'], 3)

    def test_only_selected_engine_events_are_forwarded(self):
        for event_type in ('learning_pattern', 'proactive_trigger'):
            event = Mock(event_type=event_type, conversation_id='conv-1', data={'a': 1})
            self.tracker.handle_engine_event(event)
        self.assertEqual(self.tracker.get_event_counts(), {'proactive_trigger': 1})


if __name__ == '__main__':
    unittest.main()

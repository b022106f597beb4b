"""
Tests for the automated response orchestrator
"""

import unittest
from unittest.mock import Mock

from services.response_engine import (
    AIResponseManager,
    ContextualResponseGenerator,
    FlowEngine,
    ResponseContext,
    ResponseTemplates,
    parse_flow_definition
)
from services.response_engine.scoring_tables import EMPATHY_PHRASES
from test import (
    BaseTestCase,
    FakeClock,
    MockServices,
    GREETING_MESSAGE,
    ESCALATION_MESSAGE,
    ANGRY_COMPLAINT_MESSAGE,
    ORDER_MESSAGE,
    UNMATCHED_MESSAGE
)


GREETING_FLOW_TEXT = "Hello! I'm here to help you today. What can I assist you with?"
COMPLAINT_FLOW_TEXT = ("I'm sorry to hear about this issue. Let me help resolve this for you or "
                       "connect you with someone who can.")


class TestAIResponseManager(BaseTestCase):

    def setUp(self):
        super().setUp()
        self.clock = FakeClock()
        self.manager = self.create_manager(self.clock)

    def test_greeting_is_answered_by_flow(self):
        response = self.manager.generate_automated_response(GREETING_MESSAGE, 'conv-1')

        self.assertEqual(response.source, 'automated_flow')
        self.assertEqual(response.intent, 'greeting')
        self.assertEqual(response.response, GREETING_FLOW_TEXT)
        self.assertEqual(response.confidence, 0.9)
        self.assertEqual(response.confidence_band, 'high')
        self.assertEqual(response.flow_name, 'greeting_flow')
        self.assertEqual(len(response.suggestions), 3)

    def test_escalation_request(self):
        response = self.manager.generate_automated_response(ESCALATION_MESSAGE, 'conv-1')

        self.assertTrue(response.should_escalate)
        self.assertEqual(response.intent, 'escalation')
        self.assertEqual(self.manager.state_store.get('conv-1').escalation_attempts, 1)

    def test_escalation_phrasings_are_escalated(self):
        for index, message in enumerate(["Please get me a representative",
                                         "Can I speak to a supervisor?",
                                         "I need a human agent"]):
            with self.subTest(message=message):
                response = self.manager.generate_automated_response(message, f'conv-{index}')
                self.assertEqual(response.intent, 'escalation')
                self.assertTrue(response.should_escalate)

    def test_angry_complaint_gets_empathy(self):
        response = self.manager.generate_automated_response(ANGRY_COMPLAINT_MESSAGE, 'conv-1')

        self.assertEqual(response.flow_name, 'complaint_flow')
        self.assertTrue(response.response.endswith(COMPLAINT_FLOW_TEXT))
        self.assertTrue(any(response.response.startswith(phrase) for phrase in EMPATHY_PHRASES))
        self.assertEqual(response.tone, 'empathetic')
        self.assertEqual(response.metadata['sentiment'], 'negative')
        self.assertEqual(response.metadata['urgency'], 'medium')

        session = self.manager.state_store.get('conv-1')
        self.assertEqual(session.tags, ['complaint'])
        self.assertEqual(session.priority, 'high')

    def test_unmatched_message_uses_contextual_reply(self):
        response = self.manager.generate_automated_response(UNMATCHED_MESSAGE, 'conv-1')

        self.assertEqual(response.source, 'contextual_ai')
        self.assertEqual(response.intent, 'general')
        self.assertEqual(response.response, ResponseTemplates.DEFAULT)
        self.assertEqual(response.confidence, 0.6)
        self.assertEqual(response.confidence_band, 'low')

    def test_same_message_twice_updates_state_twice(self):
        for message in (GREETING_MESSAGE, UNMATCHED_MESSAGE):
            with self.subTest(message=message):
                conversation_id = f"conv-{message}"
                self.manager.generate_automated_response(message, conversation_id)
                self.manager.generate_automated_response(message, conversation_id)

                session = self.manager.state_store.get(conversation_id)
                self.assertEqual(session.message_count, 2)
                self.assertEqual(len(session.ai_responses), 2)
                self.assertEqual(session.intents, [session.last_intent] * 2)

    def test_proactive_engagement_fires_once(self):
        first = self.manager.generate_automated_response(UNMATCHED_MESSAGE, 'conv-1')
        self.assertEqual(first.source, 'contextual_ai')

        self.clock.advance(minutes=6)
        second = self.manager.generate_automated_response(UNMATCHED_MESSAGE, 'conv-1')
        self.assertEqual(second.source, 'proactive_engagement')
        self.assertEqual(second.confidence, 0.8)
        self.assertEqual(second.type, 'abandonment_recovery')

        self.clock.advance(minutes=6)
        third = self.manager.generate_automated_response(UNMATCHED_MESSAGE, 'conv-1')
        self.assertEqual(third.source, 'contextual_ai')

        session = self.manager.state_store.get('conv-1')
        self.assertTrue(session.proactive_engaged)
        self.assertEqual(session.message_count, 3)

    def test_flows_take_precedence_over_proactive(self):
        self.manager.generate_automated_response(UNMATCHED_MESSAGE, 'conv-1')
        self.clock.advance(minutes=6)
        flow_response = self.manager.generate_automated_response(GREETING_MESSAGE, 'conv-1')
        self.assertEqual(flow_response.source, 'automated_flow')
        self.assertFalse(self.manager.state_store.get('conv-1').proactive_engaged)

        self.clock.advance(minutes=6)
        response = self.manager.generate_automated_response(UNMATCHED_MESSAGE, 'conv-1')
        self.assertEqual(response.source, 'proactive_engagement')

    def test_short_gaps_do_not_trigger_proactive(self):
        self.manager.generate_automated_response(UNMATCHED_MESSAGE, 'conv-1')
        self.clock.advance(minutes=5)
        response = self.manager.generate_automated_response(UNMATCHED_MESSAGE, 'conv-1')
        self.assertEqual(response.source, 'contextual_ai')

    def test_context_dict_is_accepted(self):
        response = self.manager.generate_automated_response(
            GREETING_MESSAGE, 'conv-1', {'customer_name': 'Ana', 'plan': 'gold'}
        )
        self.assertTrue(response.response.startswith("Hello Ana!"))

    def test_camel_case_context_keys(self):
        context = AIResponseManager._coerce_context(
            {'customerName': 'Ana', 'customerEmail': 'ana@example.com', 'plan': 'gold'}
        )
        self.assertEqual(context.customer_name, 'Ana')
        self.assertEqual(context.customer_email, 'ana@example.com')
        self.assertEqual(context.metadata, {'plan': 'gold'})

        both = AIResponseManager._coerce_context({'customerName': 'Bo', 'customer_name': 'Ana'})
        self.assertEqual(both.customer_name, 'Ana')

        response = self.manager.generate_automated_response(
            GREETING_MESSAGE, 'conv-1', {'customerName': 'Ana'}
        )
        self.assertTrue(response.response.startswith("Hello Ana!"))

    def test_organization_flow(self):
        self.manager.add_conversation_flow('acme', parse_flow_definition({
            'name': 'acme_refunds',
            'triggers': [{'keywords': ['refund']}],
            'response': 'Acme refunds take 3 days.',
            'actions': [{'type': 'tag_conversation', 'value': 'refund'}]
        }))

        response = self.manager.generate_automated_response(
            "I want a refund", 'conv-1', ResponseContext(organization_id='acme')
        )
        self.assertEqual(response.flow_name, 'acme_refunds')
        self.assertEqual(self.manager.state_store.get('conv-1').tags, ['refund'])

        other = self.manager.generate_automated_response("I want a refund", 'conv-2')
        self.assertNotEqual(other.flow_name, 'acme_refunds')

    def test_metadata_reports_analysis(self):
        response = self.manager.generate_automated_response(ORDER_MESSAGE, 'conv-1')
        self.assertEqual(response.metadata['entities'], {'order_numbers': ['ORD123456']})
        self.assertEqual(response.metadata['conversation_stage'], 'initial')

    def test_events_are_published(self):
        self.manager.generate_automated_response(GREETING_MESSAGE, 'conv-1')
        event_types = [event.event_type for event in self.manager.event_bus.get_events_for_conversation('conv-1')]
        self.assertEqual(event_types, ['flow_action', 'learning_pattern', 'response_generated'])


class TestFallbackResponses(BaseTestCase):

    def setUp(self):
        super().setUp()
        self.clock = FakeClock()

    def test_failing_analysis_degrades_to_fallback(self):
        manager = self.create_manager(self.clock, analyzer=MockServices.create_failing_analyzer())
        response = manager.generate_automated_response(ESCALATION_MESSAGE, 'conv-1')

        self.assertEqual(response.source, 'intelligent_fallback')
        self.assertEqual(response.confidence, 0.5)
        self.assertEqual(response.intent, 'general')
        self.assertFalse(response.should_escalate)
        self.assertTrue(response.response.startswith(ResponseTemplates.FALLBACK))
        self.assertIsNone(manager.state_store.get('conv-1'))

        events = manager.event_bus.get_events_for_conversation('conv-1')
        self.assertEqual([event.event_type for event in events], ['fallback_used'])

    def test_non_string_message_never_raises(self):
        manager = self.create_manager(self.clock)
        response = manager.generate_automated_response(None, 'conv-1')
        self.assertEqual(response.source, 'intelligent_fallback')

    def test_unanalyzable_messages_leave_no_locks_behind(self):
        manager = self.create_manager(self.clock)
        for index in range(50):
            manager.generate_automated_response(None, f'conv-{index}')
        self.assertEqual(len(manager.state_store), 0)
        self.assertEqual(manager.state_store._locks, {})

    def broken_flow_manager(self):
        flow_engine = Mock(spec=FlowEngine)
        flow_engine.match.side_effect = RuntimeError("flow table corrupted")
        return self.create_manager(self.clock, flow_engine=flow_engine)

    def test_fallback_escalates_escalation_intent(self):
        manager = self.broken_flow_manager()
        response = manager.generate_automated_response(ESCALATION_MESSAGE, 'conv-1')

        self.assertEqual(response.source, 'intelligent_fallback')
        self.assertTrue(response.should_escalate)
        self.assertEqual(response.response, ResponseTemplates.FALLBACK_ESCALATION)

    def test_fallback_escalates_negative_sentiment(self):
        manager = self.broken_flow_manager()
        response = manager.generate_automated_response(ANGRY_COMPLAINT_MESSAGE, 'conv-1')

        self.assertTrue(response.should_escalate)
        self.assertEqual(response.response, ResponseTemplates.FALLBACK_COMPLAINT)
        self.assertEqual(response.suggestions[0], "Speak with supervisor")

    def test_fallback_still_updates_state(self):
        generator = Mock(spec=ContextualResponseGenerator)
        generator.generate.side_effect = RuntimeError("template missing")
        manager = self.create_manager(self.clock, generator=generator)

        response = manager.generate_automated_response(UNMATCHED_MESSAGE, 'conv-1')
        self.assertEqual(response.source, 'intelligent_fallback')
        self.assertFalse(response.should_escalate)

        session = manager.state_store.get('conv-1')
        self.assertEqual(session.message_count, 1)
        self.assertEqual(session.ai_responses[0].source, 'intelligent_fallback')


class TestConversationLifecycle(BaseTestCase):

    def setUp(self):
        super().setUp()
        self.manager = self.create_manager()

    def test_analytics_for_unknown_conversation(self):
        self.assertIsNone(self.manager.get_conversation_analytics('missing'))

    def test_conversation_analytics(self):
        self.manager.generate_automated_response(GREETING_MESSAGE, 'conv-1')
        self.manager.generate_automated_response(UNMATCHED_MESSAGE, 'conv-1')

        analytics = self.manager.get_conversation_analytics('conv-1')
        self.assertEqual(analytics['message_count'], 2)
        self.assertEqual(analytics['intents'], ['greeting', 'general'])
        self.assertEqual(analytics['average_confidence'], 0.75)
        self.assertEqual(analytics['tags'], ['greeting'])

    def test_resolution_and_satisfaction(self):
        self.assertFalse(self.manager.mark_resolved('conv-1'))
        self.manager.generate_automated_response(GREETING_MESSAGE, 'conv-1')

        self.assertTrue(self.manager.mark_resolved('conv-1'))
        self.assertTrue(self.manager.record_satisfaction('conv-1', 0.8))
        with self.assertRaises(ValueError):
            self.manager.record_satisfaction('conv-1', 1.5)

        analysis = self.manager.analyze_message(UNMATCHED_MESSAGE, 'conv-1')
        self.assertEqual(analysis.user_satisfaction, 0.8)
        session = self.manager.state_store.get('conv-1')
        self.assertTrue(session.has_resolution)

    def test_clear_conversation(self):
        self.manager.generate_automated_response(GREETING_MESSAGE, 'conv-1')
        self.assertTrue(self.manager.clear_conversation('conv-1'))
        self.assertIsNone(self.manager.get_conversation_analytics('conv-1'))
        self.assertFalse(self.manager.clear_conversation('conv-1'))

    def test_confidence_bands(self):
        band = self.manager.confidence_band
        self.assertEqual(band(0.9), 'high')
        self.assertEqual(band(0.85), 'high')
        self.assertEqual(band(0.7), 'medium')
        self.assertEqual(band(0.5), 'low')
        self.assertEqual(band(0.2), 'very_low')


if __name__ == '__main__':
    unittest.main()

"""
Tests package for the Support Bot service

This package contains all test cases and testing utilities.
"""

import random
import unittest
from unittest.mock import Mock
from datetime import datetime, timedelta

from services.response_engine import (
    AIResponseManager,
    ConversationStateStore,
    EventBus,
    IFlowActionHandler,
    MessageAnalyzer,
    ResponseEnhancer
)


# Messages with a known classification
GREETING_MESSAGE = "Hello"
ESCALATION_MESSAGE = "let me speak to a human"
ANGRY_COMPLAINT_MESSAGE = "I'm furious, this is broken!!!"
ORDER_MESSAGE = "My order number is ORD123456"
UNMATCHED_MESSAGE = "Blue sky today"


class FakeClock:
    """Manually advanced clock for session and idle-time tests"""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


class RecordingActionHandler(IFlowActionHandler):
    """Flow action handler that only remembers what it was asked to do"""

    def __init__(self):
        self.calls = []

    def handle_action(self, action, conversation_id, analysis):
        self.calls.append((action.type.value, action.value, conversation_id))


class BaseTestCase(unittest.TestCase):
    """Base test case with common setup and utilities"""

    def setUp(self):
        """Set up test fixtures"""
        self.maxDiff = None
        self.test_start_time = datetime.utcnow()

    def tearDown(self):
        """Clean up after tests"""
        test_duration = datetime.utcnow() - self.test_start_time
        if test_duration.total_seconds() > 10:  # Warn about slow tests
            print(f"Warning: {self._testMethodName} took {test_duration.total_seconds():.2f}s")

    def create_manager(self, clock=None, **kwargs):
        """Create a response manager wired to a fake clock and seeded randomness"""
        clock = clock or FakeClock()
        event_bus = kwargs.pop('event_bus', None) or EventBus()
        state_store = kwargs.pop('state_store', None) or ConversationStateStore(clock=clock)
        return AIResponseManager(
            state_store=state_store,
            event_bus=event_bus,
            clock=clock,
            enhancer=kwargs.pop('enhancer', None) or ResponseEnhancer(random.Random(7)),
            **kwargs
        )

    def analyze(self, message, session=None, context=None):
        return MessageAnalyzer().analyze(message, session, context)

    def assert_api_response_valid(self, response, expected_keys=None):
        """Assert that an API response has valid structure"""
        self.assertIsInstance(response, dict)

        if expected_keys:
            for key in expected_keys:
                self.assertIn(key, response)


class MockServices:
    """Mock services for testing"""

    @staticmethod
    def create_failing_analyzer(error=None):
        """Analyzer whose every call raises"""
        mock_analyzer = Mock(spec=MessageAnalyzer)
        mock_analyzer.analyze.side_effect = error or RuntimeError("analyzer unavailable")
        return mock_analyzer

    @staticmethod
    def create_mock_analytics():
        """Analytics tracker that records calls without storing events"""
        return Mock()


__all__ = [
    'BaseTestCase',
    'MockServices',
    'FakeClock',
    'RecordingActionHandler',
    'GREETING_MESSAGE',
    'ESCALATION_MESSAGE',
    'ANGRY_COMPLAINT_MESSAGE',
    'ORDER_MESSAGE',
    'UNMATCHED_MESSAGE'
]


# Test runner utilities
def run_all_tests():
    """Run all tests in the package"""
    loader = unittest.TestLoader()
    suite = loader.discover('.', pattern='test_*.py')
    runner = unittest.TextTestRunner(verbosity=2)
    return runner.run(suite)

__all__.append('run_all_tests')

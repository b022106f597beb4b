"""
Services package for the Support Bot service

This package contains the automated response engine and the host services
that store chat messages and record analytics.
"""

from .response_engine import (
    AIResponseManager,
    ConversationStateStore,
    EventBus,
    ProactiveEngagementScheduler
)
from .analytics_tracker import AnalyticsTracker
from .message_service import MessageService


__all__ = [
    'AIResponseManager',
    'ConversationStateStore',
    'EventBus',
    'ProactiveEngagementScheduler',
    'AnalyticsTracker',
    'MessageService'
]

# Package metadata
__version__ = '1.0.0'
__description__ = 'Automated response engine and chat services'

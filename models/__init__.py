"""
Models package for the Support Bot service

This package contains message and analytics records and their in-memory stores.
"""

from .message import (
    ChatMessage,
    SenderType,
    CUSTOMER_SENDERS,
    InMemoryMessageStore
)
from .analytics_event import AnalyticsEvent

__all__ = [
    'ChatMessage',
    'SenderType',
    'CUSTOMER_SENDERS',
    'InMemoryMessageStore',
    'AnalyticsEvent'
]

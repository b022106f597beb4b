"""
Analytics Tracker for chat conversations

Records analytics events per conversation and summarizes bot confidence.
"""

import logging
import threading
from collections import Counter
from typing import Dict, List, Optional

import numpy as np

from models import AnalyticsEvent
from services.response_engine import ConversationEvent


class AnalyticsTracker:
    def __init__(self, organization_id: str = 'default', max_events: int = 50000):
        """Initialize analytics tracker"""
        self.organization_id = organization_id
        self.max_events = max_events
        self.events: List[AnalyticsEvent] = []
        self._lock = threading.Lock()

        # Engine events forwarded to analytics
        self.forwarded_engine_events = {'proactive_trigger', 'fallback_used', 'flow_action'}

        logging.info("Analytics Tracker initialized")

    def track_event(self, conversation_id: str, event_type: str, event_data: Optional[Dict] = None,
                    organization_id: Optional[str] = None) -> AnalyticsEvent:
        """Record a generic analytics event"""
        event = AnalyticsEvent(
            organization_id=organization_id or self.organization_id,
            conversation_id=conversation_id,
            event_type=event_type,
            event_data=event_data or {}
        )
        with self._lock:
            self.events.append(event)
            if len(self.events) > self.max_events:
                del self.events[:len(self.events) - self.max_events]

        logging.info(f"Analytics event: {event_type} ({conversation_id})")
        return event

    def track_bot_confidence(self, conversation_id: str, confidence: float, intent: str) -> AnalyticsEvent:
        return self.track_event(conversation_id, 'bot_confidence', {
            'confidence': confidence,
            'intent': intent
        })

    def track_missing_info(self, conversation_id: str, intent: str, content: str) -> AnalyticsEvent:
        return self.track_event(conversation_id, 'missing_info_detected', {
            'missing_info_type': intent,
            'content': content
        })

    def track_category_discussion(self, conversation_id: str, category: str) -> AnalyticsEvent:
        return self.track_event(conversation_id, 'category_discussed', {'category': category})

    def handle_engine_event(self, event: ConversationEvent) -> None:
        """Event bus subscriber that forwards selected engine events"""
        if event.event_type in self.forwarded_engine_events:
            self.track_event(event.conversation_id, event.event_type, dict(event.data))

    def get_events(self, conversation_id: Optional[str] = None,
                   event_type: Optional[str] = None) -> List[AnalyticsEvent]:
        with self._lock:
            events = list(self.events)
        if conversation_id is not None:
            events = [e for e in events if e.conversation_id == conversation_id]
        if event_type is not None:
            events = [e for e in events if e.event_type == event_type]
        return events

    def get_event_counts(self, conversation_id: Optional[str] = None) -> Dict[str, int]:
        return dict(Counter(e.event_type for e in self.get_events(conversation_id)))

    def get_confidence_summary(self, conversation_id: Optional[str] = None) -> Dict:
        """Summarize the confidence of stored bot replies"""
        confidences = [
            e.event_data['confidence']
            for e in self.get_events(conversation_id, 'bot_response')
            if 'confidence' in e.event_data
        ]
        if not confidences:
            return {'count': 0, 'mean': None, 'median': None, 'min': None, 'max': None,
                    'low_confidence_rate': 0.0}

        values = np.array(confidences, dtype=float)
        return {
            'count': int(values.size),
            'mean': round(float(np.mean(values)), 4),
            'median': round(float(np.median(values)), 4),
            'min': float(np.min(values)),
            'max': float(np.max(values)),
            'low_confidence_rate': round(float(np.mean(values < 0.7)), 4)
        }

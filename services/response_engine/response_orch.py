"""
response_orch.py - Top level orchestration of automated responses

Pipeline per inbound message:
    analyze -> flow check -> proactive check -> generate -> enhance -> update state
The orchestrator is the only error boundary: any failure inside the pipeline
degrades to the intelligent fallback reply instead of propagating.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Mapping, Optional, Union
import logging
import random

from .engine_interfaces import EventBus, IFlowActionHandler
from .engine_models import (
    AIResponseRecord, ConversationEvent, EngineResponse, FlowDefinition, Intent, MessageAnalysis,
    ResponseContext, ResponseSource, Sentiment
)
from .flow_engine import FlowEngine, SessionFlowActionHandler
from .message_classifier import MessageAnalyzer, SentimentAnalyzer
from .proactive import ProactiveEngagementChecker
from .response_generator import (
    ContextualResponseGenerator, ResponseEnhancer, fallback_text, generate_follow_up_suggestions
)
from .scoring_tables import CONFIDENCE_THRESHOLDS
from .session_store import ConversationStateStore


FALLBACK_CONFIDENCE = 0.5

ContextLike = Union[ResponseContext, Mapping[str, Any], None]

CONTEXT_FIELDS = {"customer_name", "customer_email", "organization_id", "conversation_stage"}
CONTEXT_KEY_ALIASES = {
    "customerName": "customer_name",
    "customerEmail": "customer_email",
    "organizationId": "organization_id",
    "conversationStage": "conversation_stage",
}


class AIResponseManager:
    """Builds automated replies for customer chat messages"""

    def __init__(self,
                 state_store: Optional[ConversationStateStore] = None,
                 analyzer: Optional[MessageAnalyzer] = None,
                 flow_engine: Optional[FlowEngine] = None,
                 action_handler: Optional[IFlowActionHandler] = None,
                 generator: Optional[ContextualResponseGenerator] = None,
                 enhancer: Optional[ResponseEnhancer] = None,
                 event_bus: Optional[EventBus] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 idle_threshold: timedelta = timedelta(minutes=5),
                 sentiment_cache_size: int = 5000,
                 rng: Optional[random.Random] = None):
        self.clock = clock
        self.event_bus = event_bus or EventBus()
        self.state_store = state_store or ConversationStateStore(clock=clock)
        self.analyzer = analyzer or MessageAnalyzer(
            sentiment_analyzer=SentimentAnalyzer(cache_size=sentiment_cache_size)
        )
        self.flow_engine = flow_engine or FlowEngine(
            action_handler or SessionFlowActionHandler(self.state_store, self.event_bus)
        )
        self.proactive_checker = ProactiveEngagementChecker(
            self.state_store, idle_threshold=idle_threshold, clock=clock, event_bus=self.event_bus
        )
        self.generator = generator or ContextualResponseGenerator()
        self.enhancer = enhancer or ResponseEnhancer(rng)
        self.thresholds = dict(CONFIDENCE_THRESHOLDS)
        self.logger = logging.getLogger(__name__)

    def generate_automated_response(self, message: str, conversation_id: str,
                                    context: ContextLike = None) -> EngineResponse:
        """Main entry point: always returns a usable response"""
        self.logger.info(f"Processing message for conversation {conversation_id}")
        try:
            context = self._coerce_context(context)
            with self.state_store.lock_for(conversation_id):
                response = self._run_pipeline(message, conversation_id, context)
            self.logger.info(
                f"Response for {conversation_id}: source={response.source} confidence={response.confidence}"
            )
            return response
        except Exception as e:
            self.logger.exception(f"Automated response failed for {conversation_id}: {e}")
            return self.get_fallback_response(message, conversation_id, context)

    def analyze_message(self, message: str, conversation_id: str,
                        context: ContextLike = None) -> MessageAnalysis:
        session = self.state_store.get(conversation_id)
        return self.analyzer.analyze(message, session, self._coerce_context(context))

    def get_fallback_response(self, message: str, conversation_id: str,
                              context: ContextLike = None) -> EngineResponse:
        """Fallback reply; never raises"""
        analysis = None
        intent, sentiment = Intent.GENERAL.value, Sentiment.NEUTRAL.value
        try:
            analysis = self.analyze_message(message, conversation_id, context)
            intent, sentiment = analysis.intent.intent, analysis.sentiment.sentiment
        except Exception as e:
            self.logger.error(f"Fallback analysis failed for {conversation_id}: {e}")

        response = EngineResponse(
            response=fallback_text(intent),
            confidence=FALLBACK_CONFIDENCE,
            source=ResponseSource.INTELLIGENT_FALLBACK.value,
            intent=intent,
            should_escalate=(intent == Intent.ESCALATION.value
                             or sentiment == Sentiment.NEGATIVE.value),
            suggestions=generate_follow_up_suggestions(intent),
        )
        response.confidence_band = self.confidence_band(response.confidence)
        if analysis is not None:
            response.metadata = self.response_metadata(analysis)

        try:
            if analysis is not None:
                with self.state_store.lock_for(conversation_id):
                    self.update_conversation_state(conversation_id, response, analysis)
            else:
                self.state_store.discard_lock(conversation_id)
            self.event_bus.publish(ConversationEvent(
                "fallback_used", str(conversation_id), {"intent": intent, "sentiment": sentiment}
            ))
        except Exception as e:
            self.logger.error(f"Could not record fallback for {conversation_id}: {e}")

        return response

    def update_conversation_state(self, conversation_id: str, response: EngineResponse,
                                  analysis: MessageAnalysis) -> None:
        session = self.state_store.get_or_create(conversation_id)
        now = self.clock()

        session.message_count += 1
        session.last_activity = now
        session.last_intent = analysis.intent.intent
        session.intents.append(analysis.intent.intent)
        for topic in analysis.topics:
            if topic.topic not in session.topics:
                session.topics.append(topic.topic)
        if analysis.intent.intent == Intent.ESCALATION.value:
            session.escalation_attempts += 1
        session.ai_responses.append(
            AIResponseRecord(confidence=response.confidence, source=response.source, timestamp=now)
        )

        self.state_store.save(session)
        self.update_learning_data(conversation_id, analysis, response)

    def update_learning_data(self, conversation_id: str, analysis: MessageAnalysis,
                             response: EngineResponse) -> None:
        pattern = {
            "intent": analysis.intent.intent,
            "sentiment": analysis.sentiment.sentiment,
            "topics": [topic.topic for topic in analysis.topics],
            "response_source": response.source,
            "confidence": response.confidence,
        }
        self.event_bus.publish(ConversationEvent("learning_pattern", conversation_id, pattern))

    @staticmethod
    def response_metadata(analysis: MessageAnalysis) -> Dict[str, Any]:
        """Analysis summary attached to the reply for the host"""
        return {
            "sentiment": analysis.sentiment.sentiment,
            "urgency": analysis.urgency.level,
            "topics": [topic.topic for topic in analysis.topics],
            "entities": analysis.entities.to_dict(),
            "conversation_stage": analysis.conversation_stage,
        }

    def confidence_band(self, confidence: float) -> str:
        if confidence >= self.thresholds["high_confidence"]:
            return "high"
        if confidence >= self.thresholds["medium_confidence"]:
            return "medium"
        if confidence >= self.thresholds["low_confidence"]:
            return "low"
        return "very_low"

    def add_conversation_flow(self, organization_id: str, flow: FlowDefinition) -> None:
        self.flow_engine.add_conversation_flow(organization_id, flow)

    def get_conversation_analytics(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        session = self.state_store.get(conversation_id)
        if session is None:
            return None

        data = session.to_dict()
        confidences = [record.confidence for record in session.ai_responses]
        data["average_confidence"] = (round(sum(confidences) / len(confidences), 4)
                                      if confidences else None)
        return data

    def mark_resolved(self, conversation_id: str) -> bool:
        session = self.state_store.get(conversation_id)
        if session is None:
            return False
        session.has_resolution = True
        return True

    def record_satisfaction(self, conversation_id: str, score: float) -> bool:
        if not 0.0 <= score <= 1.0:
            raise ValueError("satisfaction must be between 0 and 1")
        session = self.state_store.get(conversation_id)
        if session is None:
            return False
        session.satisfaction = score
        return True

    def clear_conversation(self, conversation_id: str) -> bool:
        return self.state_store.clear(conversation_id)

    def _run_pipeline(self, message: str, conversation_id: str,
                      context: ResponseContext) -> EngineResponse:
        analysis = self.analyze_message(message, conversation_id, context)

        flow = self.flow_engine.match(message, analysis, context.organization_id)
        if flow is not None:
            response = self.flow_engine.execute(flow, conversation_id, analysis)
            response = self.enhancer.enhance(response, analysis, context)
        else:
            response = self.proactive_checker.check(conversation_id, analysis)
            if response is None:
                response = self.generator.generate(message, analysis, context)
                response = self.enhancer.enhance(response, analysis, context)

        response.confidence_band = self.confidence_band(response.confidence)
        response.metadata = self.response_metadata(analysis)
        self.update_conversation_state(conversation_id, response, analysis)
        self.event_bus.publish(ConversationEvent("response_generated", conversation_id, {
            "source": response.source,
            "confidence": response.confidence,
            "intent": analysis.intent.intent,
            "should_escalate": response.should_escalate,
        }))
        return response

    @staticmethod
    def _coerce_context(context: ContextLike) -> ResponseContext:
        if context is None:
            return ResponseContext()
        if isinstance(context, ResponseContext):
            return context

        values, metadata = {}, {}
        for key, value in context.items():
            field_name = CONTEXT_KEY_ALIASES.get(key, key)
            if field_name in CONTEXT_FIELDS:
                # snake_case keys win over their camelCase aliases
                if value and (key == field_name or field_name not in values):
                    values[field_name] = value
            else:
                metadata[key] = value
        return ResponseContext(metadata=metadata, **values)

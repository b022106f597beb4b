"""
response_generator.py - Intent-keyed reply templates and post-processing
"""

from typing import List, Optional
import logging
import random
import re

from .engine_models import (
    EngineResponse, MessageAnalysis, ResponseContext, ResponseSource, Sentiment, UrgencyLevel,
    Intent
)
from .scoring_tables import EMPATHY_PHRASES, FOLLOW_UP_SUGGESTIONS, MAX_SUGGESTIONS


class ResponseTemplates:
    """Reply text per intent"""

    GREETING_NAMED = "Hello {name}! How can I assist you today?"
    GREETING = "Hello! I'm here to help you. What can I assist you with today?"
    QUESTION_TOPIC = ("I'd be happy to help answer your question about {topic}. Could you provide "
                      "more details so I can give you the most accurate information?")
    QUESTION = ("I'd be glad to help answer your question. Could you provide a bit more detail "
                "about what you're looking for?")
    COMPLAINT = ("I understand your concern and I want to help resolve this issue for you. Can you "
                 "tell me more about what happened so I can assist you better?")
    COMPLAINT_APOLOGY = "I'm sorry to hear about this issue. "
    ESCALATION = ("I understand you'd like to speak with a human representative. I'll make sure to "
                  "connect you with someone who can provide the assistance you need.")
    ORDER_WITH_NUMBER = ("I can help you with your order inquiry. I see you've mentioned order "
                         "{order_number}. Let me check the status for you.")
    ORDER = ("I can help you with your order inquiry. Could you please provide your order number "
             "so I can look up the details for you?")
    TECHNICAL_ISSUE = ("I understand you're experiencing a technical issue. Let me help you "
                       "troubleshoot this. Can you describe what specific problem you're encountering?")
    SUPPORT = ("I'm here to help! What specific assistance do you need today? I can help with "
               "orders, account questions, technical issues, and more.")
    DEFAULT = ("Thank you for contacting us. I'm here to help with any questions or concerns you "
               "may have. How can I assist you today?")

    FALLBACK = "I apologize, but I'm having trouble understanding your request right now. "
    FALLBACK_DEFAULT = "Could you please rephrase your question, or would you like to speak with a human agent?"
    FALLBACK_ESCALATION = "I'll connect you with a human agent who can better assist you."
    FALLBACK_COMPLAINT = ("I understand your concern. Let me get a specialist to help resolve this "
                          "issue for you.")
    FALLBACK_TECHNICAL = ("For technical issues, I recommend contacting our technical support team "
                          "or checking our troubleshooting guide.")

    URGENCY_PREFIX = "I understand this is urgent. "
    URGENCY_SUFFIX = " Let me prioritize this for you."

    PROACTIVE = ("I noticed you might need additional help. Is there anything specific I can "
                 "assist you with?")


def generate_follow_up_suggestions(intent: str) -> List[str]:
    options = FOLLOW_UP_SUGGESTIONS.get(intent, FOLLOW_UP_SUGGESTIONS["default"])
    return list(options[:MAX_SUGGESTIONS])


def fallback_text(intent: str) -> str:
    if intent == Intent.ESCALATION.value:
        return ResponseTemplates.FALLBACK_ESCALATION
    if intent == Intent.COMPLAINT.value:
        return ResponseTemplates.FALLBACK_COMPLAINT
    if intent == Intent.TECHNICAL_ISSUE.value:
        return ResponseTemplates.FALLBACK_TECHNICAL
    return ResponseTemplates.FALLBACK + ResponseTemplates.FALLBACK_DEFAULT


class ContextualResponseGenerator:
    """Produces a templated reply from the classified intent"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def generate(self, message: str, analysis: MessageAnalysis,
                 context: Optional[ResponseContext] = None) -> EngineResponse:
        context = context or ResponseContext()
        intent = analysis.intent.intent
        self.logger.debug(f"Generating contextual response for intent {intent}")

        if intent == Intent.GREETING.value:
            if context.customer_name:
                text = ResponseTemplates.GREETING_NAMED.format(name=context.customer_name)
            else:
                text = ResponseTemplates.GREETING
            confidence = 0.9
        elif intent == Intent.QUESTION.value:
            topic = analysis.primary_topic
            text = (ResponseTemplates.QUESTION_TOPIC.format(topic=topic) if topic
                    else ResponseTemplates.QUESTION)
            confidence = 0.75
        elif intent == Intent.COMPLAINT.value:
            text = ResponseTemplates.COMPLAINT
            if analysis.sentiment.sentiment == Sentiment.NEGATIVE.value:
                text = ResponseTemplates.COMPLAINT_APOLOGY + text
            confidence = 0.8
        elif intent == Intent.ESCALATION.value:
            text = ResponseTemplates.ESCALATION
            confidence = 0.95
        elif intent == Intent.ORDER_INQUIRY.value:
            order_numbers = analysis.entities.order_numbers
            text = (ResponseTemplates.ORDER_WITH_NUMBER.format(order_number=order_numbers[0])
                    if order_numbers else ResponseTemplates.ORDER)
            confidence = 0.85
        elif intent == Intent.TECHNICAL_ISSUE.value:
            text = ResponseTemplates.TECHNICAL_ISSUE
            confidence = 0.8
        elif intent == Intent.SUPPORT.value:
            text = ResponseTemplates.SUPPORT
            confidence = 0.85
        else:
            text = ResponseTemplates.DEFAULT
            confidence = 0.6

        return EngineResponse(
            response=text,
            confidence=confidence,
            source=ResponseSource.CONTEXTUAL_AI.value,
            intent=intent,
        )


class ResponseEnhancer:
    """Adds empathy, urgency acknowledgment, personalization and suggestions"""

    EMPATHY_CONFIDENCE = 0.7
    GREETING_OPENER = re.compile(r"^(hi|hello)", re.IGNORECASE)

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def enhance(self, response: EngineResponse, analysis: MessageAnalysis,
                context: Optional[ResponseContext] = None) -> EngineResponse:
        context = context or ResponseContext()

        if (analysis.sentiment.sentiment == Sentiment.NEGATIVE.value
                and analysis.sentiment.confidence > self.EMPATHY_CONFIDENCE):
            response.response = self.add_empathy(response.response)
            response.tone = "empathetic"

        if analysis.urgency.level == UrgencyLevel.HIGH.value:
            response.response = self.add_urgency_acknowledgment(response.response)
            response.priority = "high"

        name = context.customer_name
        if name and name not in response.response:
            response.response = self.GREETING_OPENER.sub(lambda m: f"{m.group(1)} {name}",
                                                         response.response, count=1)

        response.suggestions = generate_follow_up_suggestions(analysis.intent.intent)
        return response

    def add_empathy(self, text: str) -> str:
        return self.rng.choice(EMPATHY_PHRASES) + text

    @staticmethod
    def add_urgency_acknowledgment(text: str) -> str:
        return ResponseTemplates.URGENCY_PREFIX + text + ResponseTemplates.URGENCY_SUFFIX

"""
Keyword, pattern and weight tables used by the message classifiers.

Kept as data so the weights can be tuned and tested independently of the
classifier code. Intent order matters: on equal scores the earlier intent wins.
"""

import re
from dataclasses import dataclass
from typing import Dict, Tuple
from re import Pattern


@dataclass(frozen=True)
class IntentDefinition:
    name: str
    keywords: Tuple[str, ...]
    patterns: Tuple[Pattern, ...]
    max_confidence: float


@dataclass(frozen=True)
class IntentWeights:
    keyword_weight: float = 0.1
    pattern_weight: float = 0.3
    default_intent: str = "general"
    default_confidence: float = 0.3


@dataclass(frozen=True)
class SentimentLexicon:
    positive: Tuple[str, ...]
    negative: Tuple[str, ...]
    neutral: Tuple[str, ...]
    base_confidence: float = 0.6
    per_match: float = 0.1
    max_confidence: float = 0.9
    default_confidence: float = 0.5


def _compile(*patterns: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


DEFAULT_INTENT_WEIGHTS = IntentWeights()

DEFAULT_INTENTS: Tuple[IntentDefinition, ...] = (
    IntentDefinition(
        name="greeting",
        keywords=("hello", "hi", "hey", "good morning", "good afternoon", "greetings"),
        patterns=_compile(
            r"^(hi|hello|hey)\b",
            r"good (morning|afternoon|evening)",
            r"\b(hi|hello|hey|greetings)\b",
            r"^\s*(hi|hello|hey|greetings)[\s!.,]*$",
        ),
        max_confidence=0.9,
    ),
    IntentDefinition(
        name="question",
        keywords=("what", "how", "when", "where", "why", "which", "can you", "do you"),
        patterns=_compile(
            r"^(what|how|when|where|why|which)\b",
            r"(\?|help me)",
        ),
        max_confidence=0.8,
    ),
    IntentDefinition(
        name="complaint",
        keywords=("problem", "issue", "wrong", "broken", "not working", "disappointed", "angry"),
        patterns=_compile(
            r"(not working|doesn't work|broken)",
            r"(angry|frustrated|disappointed|furious)",
        ),
        max_confidence=0.85,
    ),
    IntentDefinition(
        name="request",
        keywords=("please", "can you", "could you", "would you", "i need", "i want"),
        patterns=_compile(
            r"^(please|can you|could you|would you)",
            r"(i need|i want|i would like)",
        ),
        max_confidence=0.8,
    ),
    IntentDefinition(
        name="escalation",
        keywords=("human", "agent", "person", "manager", "supervisor", "speak to someone",
                  "representative"),
        patterns=_compile(
            r"(speak|talk) (to|with).*(human|person|agent|someone|manager|supervisor|representative)",
            r"\b(human|real person)\b",
            r"\b(let me|can i|could i|i want to|i'd like to|i would like to) (speak|talk)\b",
            r"\b(human|agent|person|someone|manager|supervisor|representative)s?\b",
            r"\b(need|want|get|reach|connect|transfer|give me)\b.*"
            r"\b(human|agent|person|someone|manager|supervisor|representative)s?\b",
            r"\b(get|connect|transfer|put) me (through )?(to |with )?(a |an |the |your )?"
            r"(human|real person|agent|manager|supervisor|representative|someone)",
        ),
        max_confidence=0.95,
    ),
    IntentDefinition(
        name="support",
        keywords=("help", "support", "assist", "guidance", "advice"),
        patterns=_compile(
            r"(help me|need help|can you help)",
            r"(support|assistance)",
        ),
        max_confidence=0.8,
    ),
    IntentDefinition(
        name="order_inquiry",
        keywords=("order", "purchase", "delivery", "shipping", "track", "status"),
        patterns=_compile(
            r"(order|purchase)\s+(status|tracking|number)",
            r"(where is my|track my)",
        ),
        max_confidence=0.9,
    ),
    IntentDefinition(
        name="technical_issue",
        keywords=("login", "password", "error", "bug", "technical", "website", "app"),
        patterns=_compile(
            r"(can't login|password|technical issue)",
            r"(error|bug|not loading)",
        ),
        max_confidence=0.85,
    ),
)

DEFAULT_SENTIMENT_LEXICON = SentimentLexicon(
    positive=("good", "great", "excellent", "amazing", "wonderful", "perfect", "love", "like",
              "happy", "satisfied", "thank", "thanks", "appreciate"),
    negative=("bad", "terrible", "awful", "hate", "angry", "furious", "frustrated",
              "disappointed", "upset", "problem", "issue", "wrong", "broken", "not working"),
    neutral=("okay", "fine", "alright", "normal", "average"),
)

URGENCY_KEYWORDS: Tuple[str, ...] = (
    "urgent", "asap", "immediately", "emergency", "critical", "now", "fast", "quick",
    "right away",
)

TOPIC_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "billing": ("bill", "payment", "charge", "invoice", "cost", "price", "refund"),
    "shipping": ("delivery", "shipping", "ship", "arrived", "package", "tracking"),
    "technical": ("login", "password", "error", "bug", "website", "app", "technical"),
    "account": ("account", "profile", "settings", "personal", "information"),
    "product": ("product", "item", "quality", "defective", "broken", "feature"),
    "service": ("service", "support", "help", "assistance", "customer service"),
}

LANGUAGE_FINGERPRINTS: Dict[str, Tuple[str, ...]] = {
    "english": ("the", "and", "you", "that", "was", "for", "are", "with", "his", "they"),
    "spanish": ("el", "la", "de", "que", "y", "en", "un", "es", "se", "no"),
    "french": ("le", "de", "et", "à", "un", "il", "être", "en", "avoir", "est"),
}
DEFAULT_LANGUAGE = "english"
DEFAULT_LANGUAGE_CONFIDENCE = 0.5

# (word_count, avg_words_per_sentence, long_word_ratio) limits per level
COMPLEXITY_THRESHOLDS: Dict[str, Tuple[int, float, float]] = {
    "medium": (30, 15.0, 0.3),
    "complex": (60, 25.0, 0.5),
}
LONG_WORD_LENGTH = 6

EMPATHY_PHRASES: Tuple[str, ...] = (
    "I understand how frustrating this must be. ",
    "I'm sorry to hear you're experiencing this issue. ",
    "I can see why this would be concerning. ",
    "I apologize for the inconvenience. ",
)

FOLLOW_UP_SUGGESTIONS: Dict[str, Tuple[str, ...]] = {
    "order_inquiry": ("Check order status", "Track delivery", "Contact shipping"),
    "technical_issue": ("Try basic troubleshooting", "Contact technical support",
                        "Access user guide"),
    "complaint": ("Speak with supervisor", "File formal complaint", "Request compensation"),
    "default": ("Get more information", "Speak with human agent", "Browse help center"),
}
MAX_SUGGESTIONS = 3

CONFIDENCE_THRESHOLDS: Dict[str, float] = {
    "high_confidence": 0.85,
    "medium_confidence": 0.65,
    "low_confidence": 0.45,
    "escalation_threshold": 0.3,
}

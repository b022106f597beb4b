"""
Data models and type definitions for the automated response engine.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Optional, Any
from datetime import datetime
import uuid


class Intent(Enum):
    """Classified purpose of a customer message"""
    GREETING = "greeting"
    QUESTION = "question"
    COMPLAINT = "complaint"
    REQUEST = "request"
    ESCALATION = "escalation"
    SUPPORT = "support"
    ORDER_INQUIRY = "order_inquiry"
    TECHNICAL_ISSUE = "technical_issue"
    GENERAL = "general"


class Sentiment(Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class UrgencyLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ComplexityLevel(Enum):
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


class ConversationStage(Enum):
    """Stage of a conversation derived from its session"""
    INITIAL = "initial"
    GREETING = "greeting"
    INFORMATION_GATHERING = "information_gathering"
    PROBLEM_SOLVING = "problem_solving"
    RESOLUTION = "resolution"
    EXTENDED = "extended"


class ResponseSource(Enum):
    """Which stage of the engine produced a response"""
    CONTEXTUAL_AI = "contextual_ai"
    AUTOMATED_FLOW = "automated_flow"
    PROACTIVE_ENGAGEMENT = "proactive_engagement"
    INTELLIGENT_FALLBACK = "intelligent_fallback"


class FlowActionType(Enum):
    """Side effects a flow may declare"""
    TAG_CONVERSATION = "tag_conversation"
    SET_PRIORITY = "set_priority"
    NOTIFY_AGENT = "notify_agent"
    CREATE_TICKET = "create_ticket"
    SEND_EMAIL = "send_email"
    SCHEDULE_FOLLOWUP = "schedule_followup"


@dataclass(frozen=True)
class IntentResult:
    intent: str
    confidence: float


@dataclass(frozen=True)
class SentimentScores:
    positive: int = 0
    negative: int = 0
    neutral: int = 0


@dataclass(frozen=True)
class SentimentResult:
    """Memoized sentiment verdict; shared between callers, so immutable"""
    sentiment: str
    confidence: float
    scores: SentimentScores = field(default_factory=SentimentScores)


@dataclass
class UrgencyResult:
    level: str
    urgent_words: int = 0
    exclamations: bool = False
    all_caps: bool = False

    @property
    def indicator_count(self) -> int:
        return self.urgent_words + int(self.exclamations) + int(self.all_caps)


@dataclass
class TopicMatch:
    topic: str
    confidence: float
    matches: List[str] = field(default_factory=list)


@dataclass
class LanguageResult:
    language: str
    confidence: float


@dataclass
class ComplexityResult:
    level: str
    word_count: int
    sentence_count: int
    avg_words_per_sentence: float
    complexity_ratio: float


@dataclass
class ExtractedEntities:
    """Structured tokens found in a message; empty lists mean nothing matched"""
    emails: List[str] = field(default_factory=list)
    phones: List[str] = field(default_factory=list)
    phones_e164: List[str] = field(default_factory=list)
    order_numbers: List[str] = field(default_factory=list)
    urls: List[str] = field(default_factory=list)
    amounts: List[str] = field(default_factory=list)
    products: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        # Only fields with at least one match are reported
        return {key: value for key, value in asdict(self).items() if value}


@dataclass
class MessageAnalysis:
    """Per-message analysis record built by the analyzer"""
    intent: IntentResult
    sentiment: SentimentResult
    entities: ExtractedEntities
    urgency: UrgencyResult
    topics: List[TopicMatch]
    language: LanguageResult
    complexity: ComplexityResult
    conversation_stage: str
    previous_intent: Optional[str] = None
    conversation_length: Optional[int] = None
    escalation_attempts: Optional[int] = None
    user_satisfaction: Optional[float] = None

    @property
    def primary_topic(self) -> Optional[str]:
        return self.topics[0].topic if self.topics else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent": asdict(self.intent),
            "sentiment": asdict(self.sentiment),
            "entities": self.entities.to_dict(),
            "urgency": asdict(self.urgency),
            "topics": [asdict(topic) for topic in self.topics],
            "language": asdict(self.language),
            "complexity": asdict(self.complexity),
            "conversation_stage": self.conversation_stage,
            "previous_intent": self.previous_intent,
            "conversation_length": self.conversation_length,
            "escalation_attempts": self.escalation_attempts,
            "user_satisfaction": self.user_satisfaction,
        }


@dataclass
class ResponseContext:
    """Optional caller-supplied context for a single message"""
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    organization_id: Optional[str] = None
    conversation_stage: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AIResponseRecord:
    confidence: float
    source: str
    timestamp: datetime


@dataclass
class ConversationSession:
    """Accumulated state of one conversation"""
    conversation_id: str
    start_time: datetime
    last_activity: datetime
    message_count: int = 0
    intents: List[str] = field(default_factory=list)
    topics: List[str] = field(default_factory=list)
    last_intent: Optional[str] = None
    escalation_attempts: int = 0
    proactive_engaged: bool = False
    ai_responses: List[AIResponseRecord] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    priority: Optional[str] = None
    has_resolution: bool = False
    satisfaction: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["start_time"] = self.start_time.isoformat()
        data["last_activity"] = self.last_activity.isoformat()
        data["ai_responses"] = [
            {**asdict(record), "timestamp": record.timestamp.isoformat()}
            for record in self.ai_responses
        ]
        return data


@dataclass
class FlowTrigger:
    """One AND-ed condition set; a flow fires when any of its triggers holds"""
    intent: Optional[str] = None
    sentiment: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    urgency: Optional[str] = None


@dataclass
class FlowAction:
    type: FlowActionType
    value: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "value": self.value, **self.params}


@dataclass
class FlowDefinition:
    name: str
    triggers: List[FlowTrigger]
    response: str
    actions: List[FlowAction] = field(default_factory=list)
    escalate: bool = False
    follow_up: List[str] = field(default_factory=list)


@dataclass
class EngineResponse:
    """Reply handed back to the caller of the engine"""
    response: str
    confidence: float
    source: str
    intent: Optional[str] = None
    should_escalate: bool = False
    suggestions: List[str] = field(default_factory=list)
    tone: Optional[str] = None
    priority: Optional[str] = None
    flow_name: Optional[str] = None
    actions: List[Dict[str, Any]] = field(default_factory=list)
    follow_up_actions: List[str] = field(default_factory=list)
    type: Optional[str] = None
    confidence_band: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return {key: value for key, value in data.items() if value is not None}


class ConversationEvent:
    """Event published by the engine for external collaborators"""

    def __init__(self, event_type: str, conversation_id: str, data: Dict[str, Any] = None,
                 timestamp: datetime = None):
        self.event_id = str(uuid.uuid4())
        self.event_type = event_type
        self.conversation_id = conversation_id
        self.timestamp = timestamp or datetime.now()
        self.data: Dict[str, Any] = data or {}
        self.processed = False

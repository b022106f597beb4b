"""
Automated Response Engine Package

Rule-based intent, sentiment and entity analysis with scripted flows,
proactive engagement and templated replies for customer chat.
"""

# Import base models first
from .engine_models import *

from .engine_interfaces import IFlowActionHandler, EventBus
from .message_classifier import (
    IntentClassifier, SentimentAnalyzer, EntityExtractor, MessageHeuristics, MessageAnalyzer
)
from .session_store import ConversationStateStore
from .flow_engine import (
    FlowEngine, FlowConfigurationError, SessionFlowActionHandler, default_flows,
    parse_flow_definition, load_flow_definitions, DEFAULT_ORGANIZATION
)
from .response_generator import ContextualResponseGenerator, ResponseEnhancer, ResponseTemplates
from .proactive import ProactiveEngagementChecker, ProactiveEngagementScheduler
from .response_orch import AIResponseManager

"""
flow_engine.py - Scripted conversation flows: trigger matching, execution and actions
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json
import logging

from utils import ValidationError
from .engine_interfaces import IFlowActionHandler, EventBus
from .engine_models import (
    FlowDefinition, FlowTrigger, FlowAction, FlowActionType, MessageAnalysis, EngineResponse,
    ConversationEvent, Intent, Sentiment, UrgencyLevel, ResponseSource
)
from .session_store import ConversationStateStore


DEFAULT_ORGANIZATION = "default"
FLOW_CONFIDENCE = 0.9


class FlowConfigurationError(ValidationError):
    """Raised when a flow definition is malformed"""
    pass


def default_flows() -> List[FlowDefinition]:
    """Flows every organization gets"""
    return [
        FlowDefinition(
            name="greeting_flow",
            triggers=[FlowTrigger(intent=Intent.GREETING.value)],
            response="Hello! I'm here to help you today. What can I assist you with?",
            actions=[FlowAction(FlowActionType.TAG_CONVERSATION, "greeting")],
        ),
        FlowDefinition(
            name="escalation_flow",
            triggers=[FlowTrigger(intent=Intent.ESCALATION.value)],
            response="I understand you'd like to speak with a human agent. Let me connect you right away.",
            escalate=True,
            actions=[FlowAction(FlowActionType.NOTIFY_AGENT, params={"urgency": "high"})],
        ),
        FlowDefinition(
            name="complaint_flow",
            triggers=[FlowTrigger(intent=Intent.COMPLAINT.value, sentiment=Sentiment.NEGATIVE.value)],
            response="I'm sorry to hear about this issue. Let me help resolve this for you or connect you with someone who can.",
            actions=[
                FlowAction(FlowActionType.TAG_CONVERSATION, "complaint"),
                FlowAction(FlowActionType.SET_PRIORITY, "high"),
            ],
        ),
        FlowDefinition(
            name="order_inquiry_flow",
            triggers=[FlowTrigger(intent=Intent.ORDER_INQUIRY.value)],
            response="I can help you with your order inquiry. Could you please provide your order number?",
            actions=[FlowAction(FlowActionType.TAG_CONVERSATION, "order_inquiry")],
        ),
    ]


def parse_flow_definition(data: Dict[str, Any]) -> FlowDefinition:
    """Build a FlowDefinition from its JSON form"""
    if not isinstance(data, dict):
        raise FlowConfigurationError("Flow definition must be an object")

    name = data.get("name")
    response = data.get("response")
    raw_triggers = data.get("triggers")
    if not name or not isinstance(name, str):
        raise FlowConfigurationError("Flow definition requires a name")
    if not response or not isinstance(response, str):
        raise FlowConfigurationError(f"Flow {name} requires a response")
    if not raw_triggers or not isinstance(raw_triggers, list):
        raise FlowConfigurationError(f"Flow {name} requires at least one trigger")

    valid_intents = {intent.value for intent in Intent}
    valid_sentiments = {sentiment.value for sentiment in Sentiment}
    valid_urgency = {level.value for level in UrgencyLevel}

    triggers = []
    for raw in raw_triggers:
        if not isinstance(raw, dict):
            raise FlowConfigurationError(f"Flow {name} has a trigger that is not an object")
        intent, sentiment, urgency = raw.get("intent"), raw.get("sentiment"), raw.get("urgency")
        keywords = raw.get("keywords") or []
        if intent is not None and intent not in valid_intents:
            raise FlowConfigurationError(f"Flow {name}: unknown intent {intent!r}")
        if sentiment is not None and sentiment not in valid_sentiments:
            raise FlowConfigurationError(f"Flow {name}: unknown sentiment {sentiment!r}")
        if urgency is not None and urgency not in valid_urgency:
            raise FlowConfigurationError(f"Flow {name}: unknown urgency {urgency!r}")
        if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
            raise FlowConfigurationError(f"Flow {name}: keywords must be a list of strings")
        if intent is None and sentiment is None and urgency is None and not keywords:
            raise FlowConfigurationError(f"Flow {name} has an empty trigger")
        triggers.append(FlowTrigger(intent=intent, sentiment=sentiment, keywords=keywords,
                                    urgency=urgency))

    actions = []
    for raw in data.get("actions") or []:
        params = dict(raw) if isinstance(raw, dict) else {}
        action_type = params.pop("type", None)
        try:
            action_type = FlowActionType(action_type)
        except ValueError:
            raise FlowConfigurationError(f"Flow {name}: unknown action type {action_type!r}")
        actions.append(FlowAction(action_type, params.pop("value", None), params))

    escalate = data.get("escalate", False)
    follow_up = data.get("follow_up") or []
    if not isinstance(escalate, bool):
        raise FlowConfigurationError(f"Flow {name}: escalate must be true or false")
    if not isinstance(follow_up, list) or not all(isinstance(item, str) for item in follow_up):
        raise FlowConfigurationError(f"Flow {name}: follow_up must be a list of strings")

    return FlowDefinition(
        name=name,
        triggers=triggers,
        response=response,
        actions=actions,
        escalate=escalate,
        follow_up=list(follow_up),
    )


def load_flow_definitions(path: Union[str, Path]) -> Dict[str, List[FlowDefinition]]:
    """Load flows from a JSON file.

    The file holds either a list of flows (added to the default set) or an
    object mapping organization ids to lists of flows.
    """
    with open(path, encoding="utf-8") as handle:
        try:
            raw = json.load(handle)
        except json.JSONDecodeError as e:
            raise FlowConfigurationError(f"Invalid flow file {path}: {e}")

    if isinstance(raw, list):
        raw = {DEFAULT_ORGANIZATION: raw}
    if not isinstance(raw, dict):
        raise FlowConfigurationError(f"Flow file {path} must hold a list or an object")

    flows_by_org = {}
    for organization_id, flows in raw.items():
        if not isinstance(flows, list):
            raise FlowConfigurationError(f"Flows for organization {organization_id} must be a list")
        flows_by_org[str(organization_id)] = [parse_flow_definition(item) for item in flows]
    return flows_by_org


class SessionFlowActionHandler(IFlowActionHandler):
    """Applies tag/priority actions to the session and publishes the rest as events"""

    def __init__(self, state_store: ConversationStateStore, event_bus: Optional[EventBus] = None):
        self.state_store = state_store
        self.event_bus = event_bus
        self.logger = logging.getLogger(__name__)

    def handle_action(self, action: FlowAction, conversation_id: str,
                      analysis: MessageAnalysis) -> None:
        self.logger.info(f"Executing flow action {action.type.value} for {conversation_id}")

        if action.type == FlowActionType.TAG_CONVERSATION and action.value:
            session = self.state_store.get_or_create(conversation_id)
            if action.value not in session.tags:
                session.tags.append(action.value)
        elif action.type == FlowActionType.SET_PRIORITY and action.value:
            session = self.state_store.get_or_create(conversation_id)
            session.priority = action.value

        if self.event_bus is not None:
            self.event_bus.publish(ConversationEvent(
                "flow_action", conversation_id,
                {**action.to_dict(), "intent": analysis.intent.intent},
            ))


class FlowEngine:
    """Ordered flow table per organization; the first matching flow wins"""

    def __init__(self, action_handler: Optional[IFlowActionHandler] = None,
                 flows: Optional[List[FlowDefinition]] = None):
        self.action_handler = action_handler
        self.conversation_flows: Dict[str, List[FlowDefinition]] = {
            DEFAULT_ORGANIZATION: list(flows) if flows is not None else default_flows()
        }
        self.logger = logging.getLogger(__name__)

    def add_conversation_flow(self, organization_id: str, flow: FlowDefinition) -> None:
        self.conversation_flows.setdefault(organization_id, []).append(flow)
        self.logger.info(f"Added flow {flow.name} for organization {organization_id}")

    def get_flows(self, organization_id: Optional[str] = None) -> List[FlowDefinition]:
        """Organization flows first, then the default set"""
        flows = []
        if organization_id and organization_id != DEFAULT_ORGANIZATION:
            flows.extend(self.conversation_flows.get(organization_id, []))
        flows.extend(self.conversation_flows.get(DEFAULT_ORGANIZATION, []))
        return flows

    def match(self, message: str, analysis: MessageAnalysis,
              organization_id: Optional[str] = None) -> Optional[FlowDefinition]:
        for flow in self.get_flows(organization_id):
            if self.matches_flow_trigger(message, analysis, flow.triggers):
                return flow
        return None

    @staticmethod
    def matches_flow_trigger(message: str, analysis: MessageAnalysis,
                             triggers: List[FlowTrigger]) -> bool:
        message_lower = message.lower()
        for trigger in triggers or []:
            if trigger.intent and analysis.intent.intent != trigger.intent:
                continue
            if trigger.sentiment and analysis.sentiment.sentiment != trigger.sentiment:
                continue
            if trigger.keywords and not any(k.lower() in message_lower for k in trigger.keywords):
                continue
            if trigger.urgency and analysis.urgency.level != trigger.urgency:
                continue
            return True
        return False

    def execute(self, flow: FlowDefinition, conversation_id: str,
                analysis: MessageAnalysis) -> EngineResponse:
        self.logger.info(f"Executing automated flow {flow.name} for {conversation_id}")

        if self.action_handler is not None:
            for action in flow.actions:
                self.action_handler.handle_action(action, conversation_id, analysis)

        return EngineResponse(
            response=flow.response,
            confidence=FLOW_CONFIDENCE,
            source=ResponseSource.AUTOMATED_FLOW.value,
            intent=analysis.intent.intent,
            flow_name=flow.name,
            actions=[action.to_dict() for action in flow.actions],
            should_escalate=flow.escalate,
            follow_up_actions=list(flow.follow_up),
        )

"""
Python Support Bot Service

This service stores customer chat messages and answers them with the
rule-based automated response engine.
"""

import time
import os
import logging
from datetime import datetime, timedelta

from flask import Flask, request, jsonify, g

# Import configuration
from config import get_config

# Import models
from models import InMemoryMessageStore

# Import services
from services import (
    AIResponseManager,
    AnalyticsTracker,
    ConversationStateStore,
    EventBus,
    MessageService,
    ProactiveEngagementScheduler
)
from services.response_engine import load_flow_definitions, parse_flow_definition

# Import utilities
from utils import ValidationError, log_api_call, timing_decorator

logger = logging.getLogger(__name__)


def configure_logging(app_config):
    """Configure root logging from the active configuration"""
    handlers = [logging.StreamHandler()]
    if app_config.LOG_FILE:
        handlers.append(logging.FileHandler(app_config.LOG_FILE))

    logging.basicConfig(
        level=getattr(logging, str(app_config.LOG_LEVEL).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def create_app(app_config=None):
    """Build the Flask app and wire the response engine"""
    if app_config is None:
        config_name = os.getenv('FLASK_ENV', 'development')
        app_config = get_config(config_name)
    else:
        app_config.validate_config()

    configure_logging(app_config)

    app = Flask(__name__)
    app.config.from_object(app_config)

    # Initialize services
    try:
        event_bus = EventBus()
        state_store = ConversationStateStore(
            max_sessions=app_config.SESSION_MAX_ENTRIES,
            ttl=timedelta(minutes=app_config.SESSION_TTL_MINUTES)
        )
        response_manager = AIResponseManager(
            state_store=state_store,
            event_bus=event_bus,
            idle_threshold=timedelta(seconds=app_config.PROACTIVE_IDLE_SECONDS),
            sentiment_cache_size=app_config.SENTIMENT_CACHE_SIZE
        )

        if app_config.FLOWS_CONFIG_PATH:
            flows_by_org = load_flow_definitions(app_config.FLOWS_CONFIG_PATH)
            for organization_id, flows in flows_by_org.items():
                for flow in flows:
                    response_manager.add_conversation_flow(organization_id, flow)
            logger.info(f"Loaded conversation flows from {app_config.FLOWS_CONFIG_PATH}")

        analytics_tracker = AnalyticsTracker(
            organization_id=app_config.DEFAULT_ORGANIZATION_ID,
            max_events=app_config.ANALYTICS_MAX_EVENTS
        )
        event_bus.subscribe('*', analytics_tracker.handle_engine_event)

        message_service = MessageService(
            response_manager,
            InMemoryMessageStore(
                max_conversations=app_config.MESSAGE_STORE_MAX_CONVERSATIONS,
                max_messages_per_conversation=app_config.MESSAGE_HISTORY_LIMIT
            ),
            analytics_tracker,
            max_message_length=app_config.MESSAGE_MAX_LENGTH,
            default_organization_id=app_config.DEFAULT_ORGANIZATION_ID
        )

        scheduler = ProactiveEngagementScheduler(
            response_manager.proactive_checker,
            interval_seconds=app_config.PROACTIVE_SWEEP_INTERVAL_SECONDS,
            on_nudge=message_service.deliver_proactive_message
        )
        if app_config.ENABLE_PROACTIVE_SWEEP:
            scheduler.start()

        logger.info("Support bot services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}")
        raise

    app.extensions['support_bot'] = {
        'response_manager': response_manager,
        'message_service': message_service,
        'analytics': analytics_tracker,
        'scheduler': scheduler
    }

    # ==================== REQUEST HOOKS & ERRORS ====================

    @app.before_request
    def start_timer():
        g.request_started = time.time()

    @app.after_request
    def log_request(response):
        started = g.get('request_started')
        if started is not None:
            log_api_call(request.path, request.method, response.status_code, time.time() - started)
        return response

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        logger.warning(f"Validation error on {request.path}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 400

    # ==================== HEALTH & STATUS ENDPOINTS ====================

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint for the support bot"""
        return jsonify({
            'status': 'healthy',
            'timestamp': datetime.utcnow().isoformat(),
            'active_sessions': len(state_store),
            'proactive_sweep': scheduler.running,
            'service_name': app_config.SERVICE_NAME,
            'version': app_config.SERVICE_VERSION
        })

    # ==================== MESSAGES ====================

    @app.route('/api/messages', methods=['POST'])
    @timing_decorator
    def send_message():
        """Store a chat message and return the automated reply"""
        data = _json_body()
        result = message_service.send_message(
            conversation_id=data.get('conversation_id'),
            sender_type=data.get('sender_type', 'customer'),
            content=data.get('content'),
            customer_name=data.get('customer_name'),
            customer_email=data.get('customer_email'),
            organization_id=data.get('organization_id')
        )
        return jsonify({'success': True, **result}), 201

    @app.route('/api/conversations/<conversation_id>/messages', methods=['GET'])
    def get_conversation_messages(conversation_id):
        return jsonify({
            'conversation_id': conversation_id,
            'messages': message_service.get_messages(conversation_id)
        })

    @app.route('/api/conversations/<conversation_id>/session', methods=['GET'])
    def get_conversation_session(conversation_id):
        session_data = response_manager.get_conversation_analytics(conversation_id)
        if session_data is None:
            return jsonify({'success': False, 'error': 'Conversation not found'}), 404
        return jsonify({'success': True, 'session': session_data})

    @app.route('/api/conversations/<conversation_id>/resolve', methods=['POST'])
    def resolve_conversation(conversation_id):
        if not response_manager.mark_resolved(conversation_id):
            return jsonify({'success': False, 'error': 'Conversation not found'}), 404
        return jsonify({'success': True})

    @app.route('/api/conversations/<conversation_id>/satisfaction', methods=['POST'])
    def record_satisfaction(conversation_id):
        data = _json_body()
        try:
            score = float(data.get('score'))
            recorded = response_manager.record_satisfaction(conversation_id, score)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid satisfaction score: {e}")
        if not recorded:
            return jsonify({'success': False, 'error': 'Conversation not found'}), 404
        return jsonify({'success': True, 'score': score})

    @app.route('/api/conversations/<conversation_id>', methods=['DELETE'])
    def delete_conversation(conversation_id):
        result = message_service.clear_conversation(conversation_id)
        return jsonify({'success': True, **result})

    # ==================== FLOWS ====================

    @app.route('/api/flows/<organization_id>', methods=['POST'])
    def add_flows(organization_id):
        """Register one flow or a list of flows for an organization"""
        data = request.get_json(silent=True)
        if data is None:
            raise ValidationError("JSON body required")

        definitions = data if isinstance(data, list) else [data]
        flows = [parse_flow_definition(definition) for definition in definitions]
        for flow in flows:
            response_manager.add_conversation_flow(organization_id, flow)

        return jsonify({
            'success': True,
            'organization_id': organization_id,
            'flows_added': [flow.name for flow in flows]
        }), 201

    # ==================== ANALYTICS ====================

    @app.route('/api/analytics/events', methods=['GET'])
    def get_analytics_events():
        conversation_id = request.args.get('conversation_id')
        event_type = request.args.get('event_type')
        events = analytics_tracker.get_events(conversation_id, event_type)
        return jsonify({
            'events': [event.to_dict() for event in events],
            'counts': analytics_tracker.get_event_counts(conversation_id)
        })

    @app.route('/api/analytics/confidence', methods=['GET'])
    def get_confidence_summary():
        conversation_id = request.args.get('conversation_id')
        return jsonify(analytics_tracker.get_confidence_summary(conversation_id))

    # ==================== PROACTIVE ENGAGEMENT ====================

    @app.route('/api/proactive/sweep', methods=['POST'])
    def run_proactive_sweep():
        """Run one idle sweep immediately"""
        nudges = scheduler.sweep()
        return jsonify({
            'success': True,
            'sent': len(nudges),
            'conversations': [conversation_id for conversation_id, _ in nudges]
        })

    return app


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON object body required")
    return data


app = create_app()


if __name__ == '__main__':
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('FLASK_ENV') == 'development'

    logger.info(f"Starting Support Bot Service on port {port}")
    app.run(host='0.0.0.0', port=port, debug=debug)

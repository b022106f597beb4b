"""
proactive.py - Re-engagement of idle conversations

Two entry points share the same once-per-conversation flag:
  - ProactiveEngagementChecker.check runs when a new inbound message arrives.
  - ProactiveEngagementScheduler.sweep runs on a timer over every open session,
    so conversations that never receive another message are also nudged.
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple
import logging
import threading

from .engine_interfaces import EventBus
from .engine_models import ConversationEvent, EngineResponse, MessageAnalysis, ResponseSource
from .response_generator import ResponseTemplates
from .session_store import ConversationStateStore


PROACTIVE_CONFIDENCE = 0.8
ABANDONMENT_RECOVERY = "abandonment_recovery"


class ProactiveEngagementChecker:
    """Decides whether an idle conversation should get an unprompted message"""

    def __init__(self, state_store: ConversationStateStore,
                 idle_threshold: timedelta = timedelta(minutes=5),
                 clock: Callable[[], datetime] = datetime.now,
                 event_bus: Optional[EventBus] = None):
        self.state_store = state_store
        self.idle_threshold = idle_threshold
        self.clock = clock
        self.event_bus = event_bus
        self.logger = logging.getLogger(__name__)

    def check(self, conversation_id: str,
              analysis: Optional[MessageAnalysis] = None) -> Optional[EngineResponse]:
        session = self.state_store.get(conversation_id)
        if session is None or session.proactive_engaged:
            return None

        idle_for = self.clock() - session.last_activity
        if idle_for <= self.idle_threshold:
            return None

        session.proactive_engaged = True
        self.logger.info(
            f"Proactive engagement triggered for {conversation_id} after {idle_for.total_seconds():.0f}s idle"
        )
        if self.event_bus is not None:
            self.event_bus.publish(ConversationEvent(
                "proactive_trigger", conversation_id,
                {"type": ABANDONMENT_RECOVERY, "idle_seconds": idle_for.total_seconds()},
            ))

        return EngineResponse(
            response=ResponseTemplates.PROACTIVE,
            confidence=PROACTIVE_CONFIDENCE,
            source=ResponseSource.PROACTIVE_ENGAGEMENT.value,
            intent=analysis.intent.intent if analysis else None,
            type=ABANDONMENT_RECOVERY,
        )


class ProactiveEngagementScheduler:
    """Runs the idle check over all sessions on a fixed tick"""

    def __init__(self, checker: ProactiveEngagementChecker, interval_seconds: float = 60.0,
                 on_nudge: Optional[Callable[[str, EngineResponse], None]] = None):
        self.checker = checker
        self.interval_seconds = interval_seconds
        self.on_nudge = on_nudge
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.logger = logging.getLogger(__name__)

    def sweep(self) -> List[Tuple[str, EngineResponse]]:
        """Purge expired sessions, then check the rest once and deliver any nudges"""
        expired = self.checker.state_store.cleanup_expired_sessions()
        if expired:
            self.logger.info(f"Proactive sweep removed {expired} expired session(s)")

        nudges = []
        for session in self.checker.state_store.all_sessions():
            conversation_id = session.conversation_id
            with self.checker.state_store.lock_for(conversation_id):
                response = self.checker.check(conversation_id)
            if response is None:
                continue
            nudges.append((conversation_id, response))
            if self.on_nudge is not None:
                try:
                    self.on_nudge(conversation_id, response)
                except Exception as e:
                    self.logger.error(f"Failed to deliver proactive message to {conversation_id}: {e}")

        if nudges:
            self.logger.info(f"Proactive sweep sent {len(nudges)} message(s)")
        return nudges

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="proactive-sweep", daemon=True)
        self._thread.start()
        self.logger.info(f"Proactive sweep started (every {self.interval_seconds}s)")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self.logger.info("Proactive sweep stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.sweep()
            except Exception as e:
                self.logger.error(f"Proactive sweep failed: {e}")

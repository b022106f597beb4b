from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from utils.helpers import generate_unique_id


@dataclass
class AnalyticsEvent:
    organization_id: str
    conversation_id: str
    event_type: str
    event_data: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: generate_unique_id("evt_"))
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'conversation_id': self.conversation_id,
            'event_type': self.event_type,
            'event_data': self.event_data,
            'created_at': self.created_at.isoformat()
        }

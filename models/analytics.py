# models/analytics.py

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict

@dataclass
class TrackedEvent:
    name: str
    distinct_id: str
    properties: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_capture_payload(self, api_key: str) -> Dict[str, Any]:
        """Тело запроса для PostHog /capture/"""
        return {
            "api_key": api_key,
            "event": self.name,
            "distinct_id": self.distinct_id,
            "properties": self.properties,
            "timestamp": self.timestamp.isoformat(),
        }

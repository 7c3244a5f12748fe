from __future__ import annotations

from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Dict

from smarttask.config import Settings
from smarttask.database import check_connection
from smarttask.dispatch.registry import operation


class HealthService:
    def __init__(self, session_factory, settings: Settings):
        self.session_factory = session_factory
        self.settings = settings

    @operation(name="GetHealthStatusAsync")
    def get_health_status(self) -> Dict[str, Any]:
        database_ok = check_connection(self.session_factory)
        return {
            "status": "Healthy" if database_ok else "Degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": self.settings.environment,
            "database": "Connected" if database_ok else "Unavailable",
        }


__all__ = ["HealthService"]

"""Parse ``/api/services/{Component}/{Operation}[/...]`` request paths."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

API_SEGMENT = "api"
SERVICES_SEGMENT = "services"


@dataclass(frozen=True)
class ServiceRoute:
    component: str
    operation: str

    @property
    def key(self) -> str:
        return f"{self.component}.{self.operation}"


def parse_service_path(path: Optional[str]) -> Optional[ServiceRoute]:
    """Return the (component, operation) pair encoded in *path*, or ``None``.

    ``"/api/services/IdentityService/LoginAsync".split("/")`` yields
    ``["", "api", "services", "IdentityService", "LoginAsync"]``: at least five
    segments with fixed segments 1 and 2.  Anything after the operation name
    is ignored.
    """

    if not path:
        return None

    segments = path.split("/")
    if len(segments) < 5:
        return None
    if segments[1].lower() != API_SEGMENT or segments[2].lower() != SERVICES_SEGMENT:
        return None

    return ServiceRoute(component=segments[3], operation=segments[4])


__all__ = ["ServiceRoute", "parse_service_path"]

"""Health check responder."""

from typing import Any


class HealthProbe:
    """Stateless status responder for GET /health.

    Never touches the protocol endpoint or any transport session.
    """

    def __init__(self, service_name: str, auth_enabled: bool) -> None:
        self._service_name = service_name
        self._auth_enabled = auth_enabled

    def status(self) -> dict[str, Any]:
        return {
            "status": "ok",
            "service": self._service_name,
            "auth_enabled": self._auth_enabled,
        }

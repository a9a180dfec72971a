"""Service registry and dependency providers for FastAPI routes."""
from __future__ import annotations
from typing import Any, Dict
from fastapi import HTTPException, Request

class ServiceRegistry:
    def __init__(self) -> None:
        self._services: Dict[str, Any] = {}

    def register(self, name: str, service: Any) -> None:
        self._services[name] = service

    def get(self, name: str) -> Any:
        if name not in self._services or self._services[name] is None:
            raise HTTPException(status_code=503, detail=f"Service '{name}' not available")
        return self._services[name]

    def names(self) -> list:
        return list(self._services.keys())

    def all_status(self) -> Dict[str, Dict[str, Any]]:
        status: Dict[str, Dict[str, Any]] = {}
        for name, svc in self._services.items():
            if svc is None:
                status[name] = {"error": f"{name} service not initialized"}
            elif hasattr(svc, "get_config"):
                status[name] = {"state": "ready", "config": svc.get_config().model_dump(mode="json")}
            else:
                status[name] = {"state": "ready"}
        return status

# FastAPI dependency providers

def get_service_registry(request: Request) -> ServiceRegistry:
    return request.app.state.registry

__all__ = ["ServiceRegistry", "get_service_registry"]

"""Health payload for the lookup service."""

from __future__ import annotations

from zipfill.lookup.service import LookupService


def service_health(service: LookupService) -> dict:
    return {
        "status": "ok" if service.loaded else "loading",
        "zipCodes": service.size,
        "states": len(service.states),
    }

"""
Deterministic names and label sets for child objects.

Used both when building new children and when looking existing ones up,
so these must never depend on anything but the parent name and tier.
"""
from typing import Optional

APP_LABEL = "visitors"

DATABASE = "database"
BACKEND = "backend"
FRONTEND = "frontend"
TIERS = (DATABASE, BACKEND, FRONTEND)

SERVICE_SUFFIX = "service"
AUTH_SUFFIX = "auth"


def child_name(parent_name: str, tier: str, suffix: Optional[str] = None) -> str:
    name = f"{parent_name}-{tier}"
    if suffix:
        name = f"{name}-{suffix}"
    return name


def workload_name(parent_name: str, tier: str) -> str:
    return child_name(parent_name, tier)


def service_name(parent_name: str, tier: str) -> str:
    return child_name(parent_name, tier, SERVICE_SUFFIX)


def auth_name(parent_name: str, tier: str = DATABASE) -> str:
    return child_name(parent_name, tier, AUTH_SUFFIX)


def labels(parent_name: str, tier: str) -> dict[str, str]:
    return {
        "app": APP_LABEL,
        "owner": parent_name,
        "tier": tier,
    }

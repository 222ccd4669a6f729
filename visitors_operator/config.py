"""
Configuration module — all settings from env vars with sensible defaults.
Follows 12-factor app methodology.
"""
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    # Kubernetes
    KUBECONFIG: str = os.environ.get("KUBECONFIG", "")
    IN_CLUSTER: bool = os.environ.get("IN_CLUSTER", "false").lower() == "true"

    # CRD
    CRD_GROUP: str = os.environ.get("CRD_GROUP", "example.com")
    CRD_VERSION: str = os.environ.get("CRD_VERSION", "v1beta1")
    CRD_PLURAL: str = os.environ.get("CRD_PLURAL", "visitorsapps")
    CRD_KIND: str = "VisitorsApp"

    # Reconciliation timing (seconds)
    REQUEUE_DELAY: float = float(os.environ.get("REQUEUE_DELAY", "5"))
    ERROR_RETRY_DELAY: float = float(os.environ.get("ERROR_RETRY_DELAY", "30"))
    RESYNC_INTERVAL: float = float(os.environ.get("RESYNC_INTERVAL", "120"))
    MAX_WORKERS: int = int(os.environ.get("MAX_WORKERS", "3"))

    # Fixed images for the application tiers
    BACKEND_IMAGE: str = os.environ.get("BACKEND_IMAGE", "kerryduan/visitors-service:1.0.0")
    FRONTEND_IMAGE: str = os.environ.get("FRONTEND_IMAGE", "jdob/visitors-webui:1.0.0")

    # Observability
    REDIS_URL: str = os.environ.get("REDIS_URL", "")
    METRICS_PORT: int = int(os.environ.get("METRICS_PORT", "0"))


settings = Settings()

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
    MANAGED_BY: str = os.environ.get("MANAGED_BY", "store-provisioning-platform")

    # Database
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "sqlite:///store_platform.db")

    # Helm
    HELM_CHART: str = os.environ.get("HELM_CHART", "bitnami/wordpress")
    HELM_REPO_NAME: str = os.environ.get("HELM_REPO_NAME", "bitnami")
    HELM_REPO_URL: str = os.environ.get("HELM_REPO_URL", "https://charts.bitnami.com/bitnami")
    INSTALL_TIMEOUT: int = int(os.environ.get("INSTALL_TIMEOUT", "600"))
    VALUES_DIR: str = os.environ.get("VALUES_DIR", "/tmp/helm-values")

    # Reconciliation
    RECONCILE_INTERVAL: float = float(os.environ.get("RECONCILE_INTERVAL", "10"))

    # Store values
    DOMAIN_SUFFIX: str = os.environ.get("DOMAIN_SUFFIX", "localhost")
    STORE_URL_PORT: str = os.environ.get("STORE_URL_PORT", "8080")
    INGRESS_CLASS: str = os.environ.get("INGRESS_CLASS", "traefik")
    STORAGE_CLASS: str = os.environ.get("STORAGE_CLASS", "local-path")
    APP_STORAGE_SIZE: str = os.environ.get("APP_STORAGE_SIZE", "5Gi")
    DB_STORAGE_SIZE: str = os.environ.get("DB_STORAGE_SIZE", "10Gi")

    # Events (Redis stream, optional)
    REDIS_URL: str = os.environ.get("REDIS_URL", "")

    # Rate limiting
    RATE_LIMIT: str = os.environ.get("RATE_LIMIT", "10/minute")

    # API
    API_HOST: str = os.environ.get("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.environ.get("API_PORT", "8080"))
    CORS_ORIGINS: str = os.environ.get("CORS_ORIGINS", "*")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")


settings = Settings()

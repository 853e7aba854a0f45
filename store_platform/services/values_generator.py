"""
Helm values generation for a store release.

Produces the nested values document for the WordPress/WooCommerce chart,
including freshly generated admin and MariaDB credentials. Pure apart from
the secure random source; persisting the document is the installer's job.
"""

import secrets
import string

from ..config import settings

PASSWORD_ALPHABET = string.ascii_letters + string.digits
ADMIN_PASSWORD_LENGTH = 16
DB_PASSWORD_LENGTH = 20

DB_NAME = "bitnami_wordpress"
DB_USER = "bn_wordpress"


def generate_password(length: int = ADMIN_PASSWORD_LENGTH) -> str:
    """Cryptographically random printable password."""
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def namespace_for(store_id: str) -> str:
    return f"store-{store_id}"


def release_for(store_id: str) -> str:
    return namespace_for(store_id)


def hostname_for(store_id: str) -> str:
    return f"store-{store_id}.{settings.DOMAIN_SUFFIX}"


def url_for(store_id: str) -> str:
    """External address of a store, derived from its id only."""
    host = hostname_for(store_id)
    if settings.STORE_URL_PORT:
        return f"http://{host}:{settings.STORE_URL_PORT}"
    return f"http://{host}"


def _persistence(size: str) -> dict:
    return {
        "enabled": True,
        "storageClass": settings.STORAGE_CLASS,
        "size": size,
    }


def build_values(store_id: str, store_name: str) -> dict:
    """Values document for `helm install -f`."""
    return {
        "wordpressBlogName": store_name,
        "wordpressUsername": "admin",
        "wordpressPassword": generate_password(ADMIN_PASSWORD_LENGTH),
        "wordpressEmail": f"admin@store-{store_id}.local",
        "ingress": {
            "enabled": True,
            "ingressClassName": settings.INGRESS_CLASS,
            "hostname": hostname_for(store_id),
            "path": "/",
            "pathType": "Prefix",
        },
        "service": {"type": "ClusterIP"},
        "networkPolicy": {"enabled": False},
        "mariadb": {
            "networkPolicy": {"enabled": False},
            "auth": {
                "rootPassword": generate_password(DB_PASSWORD_LENGTH),
                "database": DB_NAME,
                "username": DB_USER,
                "password": generate_password(DB_PASSWORD_LENGTH),
            },
            "primary": {"persistence": _persistence(settings.DB_STORAGE_SIZE)},
        },
        "persistence": _persistence(settings.APP_STORAGE_SIZE),
    }

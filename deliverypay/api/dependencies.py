import hmac
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv
from fastapi import Header, HTTPException, Request, status

from deliverypay.integrations.contracts.erp import ERPBackend
from deliverypay.payments.registry import PaymentSessionRegistry
from deliverypay.utils.config_loader import SettingsStore

load_dotenv()

logger = logging.getLogger(__name__)

_ALLOWLIST_PATHS = {
    "/",
    "/health",
    "/docs",
    "/docs/oauth2-redirect",
    "/openapi.json",
    "/redoc",
}


@dataclass
class Services:
    settings_store: SettingsStore
    erp: ERPBackend
    registry: PaymentSessionRegistry


# Set by main.py at startup; tests replace it or use dependency_overrides.
services: Optional[Services] = None


def get_services() -> Services:
    if services is None:
        raise RuntimeError("Services are not initialised.")
    return services


def get_erp() -> ERPBackend:
    return get_services().erp


def get_registry() -> PaymentSessionRegistry:
    return get_services().registry


def get_settings_store() -> SettingsStore:
    return get_services().settings_store


def get_api_keys():
    keys = os.getenv("API_KEYS", "")
    return [k.strip() for k in keys.split(",") if k.strip()]


async def api_key_protection(
    request: Request = None,
    x_api_key: str = Header(default=None, alias="X-API-KEY"),
):
    """Require X-API-KEY when API_KEYS is configured; open otherwise."""
    valid_keys = get_api_keys()
    if not valid_keys:
        return

    if request is not None and request.url.path in _ALLOWLIST_PATHS:
        return

    candidate = (x_api_key or "").strip()
    ok = bool(candidate) and any(hmac.compare_digest(candidate, k) for k in valid_keys)
    if not ok:
        path = request.url.path if request is not None else "<no-request>"
        logger.info("API key rejected: path=%s header_present=%s", path, bool(x_api_key))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API Key",
        )

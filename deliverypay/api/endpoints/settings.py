from typing import Optional

from fastapi import APIRouter, Body, Depends

from deliverypay.api.dependencies import get_erp, get_settings_store
from deliverypay.integrations.contracts.erp import ERPBackend
from deliverypay.utils.config_loader import ERPSettings, SettingsStore

api = APIRouter()
settings_api = api

SECRET_MASK = "********"


def _masked(settings: ERPSettings) -> dict:
    body = settings.model_dump()
    if body.get("api_secret"):
        body["api_secret"] = SECRET_MASK
    return body


@api.get("/settings", tags=["Settings"])
async def read_settings(store: SettingsStore = Depends(get_settings_store)):
    return _masked(store.load())


@api.put("/settings", tags=["Settings"])
async def save_settings(settings: ERPSettings, store: SettingsStore = Depends(get_settings_store)):
    # A masked secret coming back from the form means "unchanged".
    if settings.api_secret == SECRET_MASK:
        settings = settings.model_copy(update={"api_secret": store.load().api_secret})
    store.save(settings)
    return _masked(settings)


@api.post("/settings/test-connection", tags=["Settings"])
async def test_connection(
    settings: Optional[ERPSettings] = Body(default=None),
    store: SettingsStore = Depends(get_settings_store),
    erp: ERPBackend = Depends(get_erp),
):
    if settings is not None and settings.api_secret == SECRET_MASK:
        settings = settings.model_copy(update={"api_secret": store.load().api_secret})
    return await erp.test_connection(settings)

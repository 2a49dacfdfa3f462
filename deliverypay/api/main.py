"""
FastAPI application - Main entry point
"""

from dotenv import load_dotenv

load_dotenv()

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import deliverypay.api.dependencies as dependencies
from deliverypay.api.dependencies import Services, api_key_protection
from deliverypay.api.endpoints.orders import orders_api
from deliverypay.api.endpoints.payments import payments_api
from deliverypay.api.endpoints.settings import settings_api
from deliverypay.error_handler import ErrorHandler
from deliverypay.integrations.clients.mocks.erpnext import ERPNextMockClient
from deliverypay.integrations.clients.mocks.mpesa import MpesaMockClient
from deliverypay.integrations.clients.real_http.erpnext import ERPNextClient
from deliverypay.integrations.clients.real_http.mpesa import RealMpesaClient
from deliverypay.payments.registry import PaymentSessionRegistry
from deliverypay.utils.config_loader import SettingsStore

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

error_handler = ErrorHandler()


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

def _should_use_real_erp(store: SettingsStore) -> bool:
    mode = os.getenv("DELIVERYPAY_INTEGRATIONS_MODE", "").strip().lower()
    if mode in {"real", "live"}:
        return True
    if mode in {"mock", "test"}:
        return False
    # A saved settings file means someone configured a real ERPNext site.
    return store.path.exists()


def build_services() -> Services:
    """Select mock or real clients. This is the only place that decides."""
    store = SettingsStore()

    if _should_use_real_erp(store):
        erp = ERPNextClient(get_settings=store.load)
    else:
        erp = ERPNextMockClient()

    # The live gateway is only used when explicitly configured.
    if os.getenv("MPESA_API_URL"):
        provider = RealMpesaClient()
    else:
        provider = MpesaMockClient()

    registry = PaymentSessionRegistry(provider, erp, get_settings=store.load)
    logger.info("Services ready: erp=%s provider=%s", type(erp).__name__, type(provider).__name__)
    return Services(settings_store=store, erp=erp, registry=registry)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if dependencies.services is None:
        dependencies.services = build_services()
    yield
    # Abandon in-flight collections so no timer fires after shutdown.
    dependencies.services.registry.close_all()


# Initialize FastAPI app
app = FastAPI(
    title="Delivery Pay API",
    description="Delivery orders from ERPNext with M-Pesa STK push collection",
    version="1.0.0",
    lifespan=lifespan,
    dependencies=[Depends(api_key_protection)],
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(orders_api, prefix="/api/v1")
app.include_router(payments_api, prefix="/api/v1")
app.include_router(settings_api, prefix="/api/v1")


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    payload = error_handler.handle_exception(exc, context={"path": request.url.path, "method": request.method})
    return JSONResponse(status_code=500, content=payload)


@app.get("/health", tags=["Health"])
async def health_check():
    services = dependencies.services
    return {
        "status": "healthy",
        "erp": type(services.erp).__name__ if services else None,
        "timestamp": datetime.now().isoformat(),
    }

# Run with: uvicorn app.main:app --host 0.0.0.0 --port 8000 --reload

import asyncio
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.address_routes import router as address_router
from app.admin_routes import router as admin_router
from app.auth_routes import router as auth_router
from app.catalog_routes import appliance_types_router, appliances_router
from app.identity_routes import router as identity_router
from app.notification_routes import router as notification_router, ws_router
from app.profile_routes import clients_router, technicians_router
from app.proposal_routes import router as proposal_router
from app.rating_routes import router as rating_router
from app.service_request_routes import router as service_request_router
from .config import CORS_ORIGINS, EXPIRY_SWEEP_INTERVAL_SECONDS, SEED_ON_STARTUP
from .db import Base, engine
from . import models
from .errors import register_exception_handlers
from .notifications import registry
from .scheduling import run_expiry_sweep
from .seed import seed_data
from .logging_config import get_logger, log_error

logger = get_logger("main")

app = FastAPI(title="MyHomeTech API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(identity_router, prefix="/identity", tags=["identity"])
app.include_router(clients_router, prefix="/clients", tags=["clients"])
app.include_router(technicians_router, prefix="/technicians", tags=["technicians"])
app.include_router(appliance_types_router, prefix="/appliance-types", tags=["catalog"])
app.include_router(appliances_router, prefix="/appliances", tags=["catalog"])
app.include_router(address_router, prefix="/addresses", tags=["addresses"])
app.include_router(service_request_router, prefix="/service-requests", tags=["service-requests"])
app.include_router(proposal_router, prefix="/alternative-date-proposals", tags=["service-requests"])
app.include_router(notification_router, prefix="/notifications", tags=["notifications"])
app.include_router(rating_router, prefix="/ratings", tags=["ratings"])
app.include_router(admin_router, prefix="/admin", tags=["admin"])
app.include_router(ws_router)

_sweep_task: Optional[asyncio.Task] = None


async def _expiry_sweep_loop(interval: int):
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(run_expiry_sweep)
        except Exception as e:
            log_error(e, "Expiry sweep failed")


@app.on_event("startup")
async def on_startup():
    global _sweep_task
    logger.info("🚀 Starting MyHomeTech API...")
    Base.metadata.create_all(bind=engine)
    if SEED_ON_STARTUP:
        seed_data()

    # Pushes queued by worker threads are scheduled onto this loop
    registry.bind_loop(asyncio.get_running_loop())

    if EXPIRY_SWEEP_INTERVAL_SECONDS > 0:
        _sweep_task = asyncio.create_task(_expiry_sweep_loop(EXPIRY_SWEEP_INTERVAL_SECONDS))
        logger.info(f"Expiry sweep every {EXPIRY_SWEEP_INTERVAL_SECONDS}s")
    logger.info("✅ Database initialized")


@app.on_event("shutdown")
async def on_shutdown():
    global _sweep_task
    registry.unbind_loop()
    if _sweep_task is not None:
        _sweep_task.cancel()
        _sweep_task = None


@app.get("/health")
async def health_check():
    return {"status": "ok"}

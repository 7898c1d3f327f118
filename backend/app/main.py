"""
SafeTrack API
=============
FastAPI application entry point. Mount routers here.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.routers import measurements, telemetry

settings = get_settings()

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

app = FastAPI(
    title="SafeTrack API",
    description="Wearable health tracker telemetry and measurement history",
    version="1.0.0",
    docs_url="/api/docs" if settings.environment != "production" else None,
    redoc_url="/api/redoc" if settings.environment != "production" else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(telemetry.router)
app.include_router(measurements.router)


@app.get("/api/v1/ping")
async def ping() -> dict:
    return {"status": "ok", "service": "safetrack-api"}

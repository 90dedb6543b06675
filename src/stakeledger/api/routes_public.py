# src/stakeledger/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from stakeledger.api.routes_public_parts.accounts import router as accounts_router
from stakeledger.api.routes_public_parts.config import router as config_router
from stakeledger.api.routes_public_parts.convert import router as convert_router
from stakeledger.api.routes_public_parts.health import router as health_router
from stakeledger.api.routes_public_parts.metrics import router as metrics_router
from stakeledger.api.routes_public_parts.stats import router as stats_router
from stakeledger.api.routes_public_parts.tx import router as tx_router

public_router = APIRouter()

# Versioned API surface
public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(config_router, prefix="/v1", tags=["config"])
public_router.include_router(accounts_router, prefix="/v1", tags=["accounts"])
public_router.include_router(stats_router, prefix="/v1", tags=["stats"])
public_router.include_router(tx_router, prefix="/v1", tags=["tx"])
public_router.include_router(convert_router, prefix="/v1", tags=["convert"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])

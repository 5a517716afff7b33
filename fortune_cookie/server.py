#!/usr/bin/env python3
"""
Zen Fortune Cookie - FastAPI Server
Exposes cracking, archetype selection, gesture mode and stats over HTTP
"""

import os
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
from dotenv import load_dotenv

from .config import Cfg, load_config
from .dispatcher import CrackDispatcher
from .errors import ProtocolDriftError
from .fortunes import FortunePool
from .gesture_engine import GestureEngine
from .ledger import FortuneLedger
from .program import ARCHETYPES, IDL_VERSION
from .wallet import load_wallet

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the routes need, built once per server lifetime."""
    cfg: Cfg
    ledger: FortuneLedger
    dispatcher: CrackDispatcher
    gestures: GestureEngine


services: Optional[Services] = None


def build_services(cfg: Optional[Cfg] = None) -> Services:
    """Wire the ledger, wallet, dispatcher and gesture engine from config."""
    cfg = cfg or load_config(os.getenv("FORTUNE_CONFIG"))
    ledger = FortuneLedger.from_config(cfg.cluster)
    pool = FortunePool.load(cfg.content.fortunes_path)
    wallet = load_wallet(cfg.wallet)
    dispatcher = CrackDispatcher(ledger, pool, wallet)
    gestures = GestureEngine(cfg, dispatcher)
    return Services(cfg=cfg, ledger=ledger, dispatcher=dispatcher, gestures=gestures)


# Request/Response models
class StatusResponse(BaseModel):
    loading: bool
    error: Optional[str] = None
    fortune: Optional[str] = None
    archetype: str
    rarity: str
    seed_label: str
    signature: Optional[str] = None
    signature_short: Optional[str] = None
    wallet: Optional[str] = None
    stats_ready: Optional[bool] = None
    stats_total: Optional[int] = None
    gesture_state: str
    gesture_error: Optional[str] = None


class CrackResponse(BaseModel):
    success: bool
    fortune: Optional[str] = None
    archetype: Optional[str] = None
    rarity: Optional[str] = None
    signature: Optional[str] = None
    cookie_address: Optional[str] = None
    error: Optional[str] = None


class ArchetypeRequest(BaseModel):
    archetype: Optional[str] = None
    random: bool = False


class GestureRequest(BaseModel):
    enabled: bool


class GestureResponse(BaseModel):
    enabled: bool
    state: str
    error: Optional[str] = None


class StatsResponse(BaseModel):
    ready: Optional[bool] = None
    total: Optional[int] = None
    error: Optional[str] = None


# Lifespan manager for FastAPI
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build services on startup, release camera/model and RPC client on shutdown"""
    global services

    logger.info("🚀 Starting Zen Fortune Cookie server...")
    services = build_services()
    await services.dispatcher.start()
    logger.info(f"✅ Ready (stats account {'found' if services.dispatcher.stats.ready else 'missing'})")

    yield

    logger.info("🧹 Shutting down server...")
    await services.gestures.close()
    await services.ledger.close()
    services = None


app = FastAPI(title="Zen Fortune Cookie", lifespan=lifespan)


def _services() -> Services:
    if services is None:
        raise HTTPException(status_code=503, detail="Server not initialized")
    return services


def _status(svc: Services) -> StatusResponse:
    return StatusResponse(
        **svc.dispatcher.snapshot(),
        gesture_state=svc.gestures.state.value,
        gesture_error=svc.gestures.error,
    )


@app.get("/")
async def root():
    svc = _services()
    return {
        "service": "Zen Fortune Cookie",
        "program_id": str(svc.ledger.program_id),
        "idl_version": IDL_VERSION,
        "wallet_connected": svc.dispatcher.wallet is not None,
        "stats_ready": svc.dispatcher.stats.ready,
    }


@app.get("/status", response_model=StatusResponse)
async def get_status():
    return _status(_services())


@app.post("/crack", response_model=CrackResponse)
async def crack_cookie():
    svc = _services()
    if svc.dispatcher.busy:
        raise HTTPException(status_code=409, detail="A crack is already in progress")

    try:
        result = await svc.dispatcher.crack()
    except ProtocolDriftError as e:
        logger.critical(f"❌ Protocol drift: {e}")
        raise HTTPException(status_code=500, detail="Client and on-chain program disagree")

    if result is None:
        return CrackResponse(success=False, error=svc.dispatcher.error)
    return CrackResponse(
        success=True,
        fortune=result.fortune,
        archetype=result.archetype,
        rarity=result.rarity,
        signature=result.signature,
        cookie_address=str(result.cookie_address),
    )


@app.post("/archetype", response_model=StatusResponse)
async def select_archetype(request: ArchetypeRequest):
    svc = _services()
    if request.random:
        svc.dispatcher.set_random(True)
    elif request.archetype is not None:
        try:
            svc.dispatcher.select(request.archetype)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    else:
        raise HTTPException(status_code=400, detail=f"Give an archetype ({', '.join(ARCHETYPES)}) or random=true")
    return _status(svc)


@app.post("/gesture", response_model=GestureResponse)
async def set_gesture_mode(request: GestureRequest):
    svc = _services()
    state = svc.gestures.set_enabled(request.enabled)
    return GestureResponse(enabled=svc.gestures.enabled, state=state.value, error=svc.gestures.error)


@app.get("/stats", response_model=StatsResponse)
async def get_stats():
    svc = _services()
    total = await svc.dispatcher.stats.refresh()
    return StatsResponse(ready=svc.dispatcher.stats.ready, total=total)


@app.post("/stats/init", response_model=StatsResponse)
async def initialize_stats():
    svc = _services()
    ok = await svc.dispatcher.initialize_stats()
    return StatsResponse(
        ready=svc.dispatcher.stats.ready,
        total=svc.dispatcher.stats.total,
        error=None if ok else svc.dispatcher.error,
    )


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)

    PORT = int(os.getenv("PORT", "8000"))

    logger.info(f"🚀 Starting FastAPI server on port {PORT}")
    logger.info(f"📚 API documentation available at http://localhost:{PORT}/docs")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=PORT,
        reload=False,
        log_level="info"
    )

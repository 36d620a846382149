"""
Web Interface - FastAPI JSON API for running and browsing benchmarks
"""

from typing import Dict, List, Optional, Any
import hmac
import os

from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from loguru import logger
from dotenv import load_dotenv

from ..benchmark.orchestrator import BenchmarkOrchestrator, ProviderSelection
from ..data.config import ConfigManager
from ..data.keys import EnvKeyResolver
from ..data.models import TriggerType
from ..data.registry import ProviderName
from ..data.sources.base import InvalidRequestError
from ..storage.store import RunStore, SqlRunStore

load_dotenv()


# Pydantic models for API
class ProviderKey(BaseModel):
    name: ProviderName
    api_key: Optional[str] = None


class BenchmarkRequest(BaseModel):
    wallet_address: str
    chain: Optional[str] = None
    providers: List[ProviderKey]
    iterations: Optional[int] = Field(default=None, ge=1, le=50)
    concurrency: Optional[int] = Field(default=None, ge=0, le=50)


class PricingRequest(BaseModel):
    chain: Optional[str] = None
    providers: List[ProviderKey]
    trigger_type: TriggerType = TriggerType.MANUAL


class NftRequest(BaseModel):
    wallet_address: str
    chain: Optional[str] = None
    providers: List[ProviderKey]


def _selections(providers: List[ProviderKey]) -> List[ProviderSelection]:
    return [ProviderSelection(p.name, p.api_key) for p in providers]


# Create FastAPI app
app = FastAPI(
    title="chainbench API",
    description="Latency, reliability, completeness and pricing benchmarks for blockchain data providers",
    version="0.3.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global instances
run_store: Optional[RunStore] = None
orchestrator: Optional[BenchmarkOrchestrator] = None


def get_store() -> Optional[RunStore]:
    """Shared run store, or None while the database cannot be opened."""
    global run_store
    if run_store is None:
        try:
            run_store = SqlRunStore(ConfigManager().database_url)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Run store unavailable, benchmarks will not be persisted: {e}")
            return None
    return run_store


def require_store(store: Optional[RunStore] = Depends(get_store)) -> RunStore:
    if store is None:
        raise HTTPException(status_code=503, detail="Run store unavailable")
    return store


def get_key_resolver() -> EnvKeyResolver:
    return EnvKeyResolver()


def get_orchestrator(store: Optional[RunStore] = Depends(get_store),
                     keys: EnvKeyResolver = Depends(get_key_resolver)) -> BenchmarkOrchestrator:
    global orchestrator
    if orchestrator is None:
        bot = BenchmarkOrchestrator(key_resolver=keys, store=store)
        if store is None:
            return bot
        orchestrator = bot
    return orchestrator


@app.get("/api/health")
async def health_check():
    return {"status": "ok"}


@app.get("/api/keys")
async def key_status(keys: EnvKeyResolver = Depends(get_key_resolver)):
    return keys.key_status()


@app.post("/api/benchmark")
async def run_benchmark(body: BenchmarkRequest, bot: BenchmarkOrchestrator = Depends(get_orchestrator)):
    try:
        run = await bot.run_balance_benchmark(
            body.wallet_address, body.chain, _selections(body.providers), body.iterations, body.concurrency,
        )
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return run.model_dump(mode="json")


@app.post("/api/pricing")
async def run_pricing(body: PricingRequest, bot: BenchmarkOrchestrator = Depends(get_orchestrator)):
    try:
        run = await bot.run_pricing_benchmark(
            chain=body.chain, providers=_selections(body.providers), trigger=body.trigger_type,
        )
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return run.model_dump(mode="json")


@app.post("/api/nfts")
async def run_nfts(body: NftRequest, bot: BenchmarkOrchestrator = Depends(get_orchestrator)):
    try:
        run = await bot.run_nft_benchmark(body.wallet_address, body.chain, _selections(body.providers))
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return run.model_dump(mode="json")


HISTORY_KINDS = {"balances": "benchmark_runs", "pricing": "pricing_runs", "nfts": "nft_runs"}


@app.get("/api/history")
def get_history(
    type: str = Query("all", pattern="^(all|balances|pricing|nfts)$"),
    limit: int = Query(30, ge=1, le=100),
    offset: int = Query(0, ge=0),
    store: RunStore = Depends(require_store),
) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for kind, key in HISTORY_KINDS.items():
        if type in ("all", kind):
            result[key] = [r.model_dump(mode="json") for r in store.list_recent(limit, offset, kind=kind)]
            result[f"{key}_total"] = store.count(kind)
    return result


@app.get("/api/history/{run_id}")
def get_run(run_id: str, store: RunStore = Depends(require_store)):
    run = store.get_by_id(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return run.model_dump(mode="json")


@app.get("/api/trends")
def get_trends(limit: int = Query(30, ge=1, le=100), store: RunStore = Depends(require_store)):
    return {
        "latency": [p.model_dump(mode="json") for p in store.latency_trends(limit)],
        "coverage": [p.model_dump(mode="json") for p in store.coverage_trends(limit)],
    }


def verify_cron_secret(request: Request):
    expected = os.getenv("CRON_SECRET")
    supplied = request.headers.get("x-cron-secret") or request.query_params.get("secret")
    if not expected or not supplied or not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Unauthorized")


@app.get("/api/cron", dependencies=[Depends(verify_cron_secret)])
async def scheduled_run(bot: BenchmarkOrchestrator = Depends(get_orchestrator)):
    summary = await bot.run_scheduled()
    if summary.get("error"):
        logger.warning(f"Scheduled run not started: {summary['error']}")
        raise HTTPException(status_code=400, detail=summary["error"])
    return summary

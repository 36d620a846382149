"""
Run Store - append/query persistence for finished benchmark runs
"""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Type, Union

from loguru import logger
from pydantic import BaseModel
from sqlalchemy import (
    JSON, Column, DateTime, Float, ForeignKey, Integer, MetaData, String, Table,
    create_engine, func, select,
)
from sqlalchemy.engine import make_url

from ..data.models import BenchmarkRun, NftRun, PricingRun, TriggerType

Run = Union[BenchmarkRun, PricingRun, NftRun]

RUN_TYPES: Dict[str, Type[BaseModel]] = {
    "balances": BenchmarkRun,
    "pricing": PricingRun,
    "nfts": NftRun,
}

metadata = MetaData()

benchmark_runs = Table(
    "benchmark_runs", metadata,
    Column("id", String(36), primary_key=True),
    Column("kind", String(16), nullable=False, index=True),
    Column("chain", String(64), nullable=False),
    Column("wallet_address", String(128)),
    Column("trigger_type", String(16), nullable=False),
    Column("status", String(16), nullable=False),
    Column("created_at", DateTime, nullable=False, index=True),
    Column("payload", JSON, nullable=False),
)

provider_snapshots = Table(
    "provider_snapshots", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("run_id", String(36), ForeignKey("benchmark_runs.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("provider", String(32), nullable=False),
    Column("display_name", String(64)),
    Column("color", String(16)),
    Column("latency_avg", Integer),
    Column("latency_p95", Integer),
    Column("success_rate", Integer),
    Column("throughput_rps", Float),
    Column("completeness_score", Integer),
    Column("coverage_pct", Integer),
    Column("avg_deviation", Float),
    Column("nft_count", Integer),
)


class ProviderSnapshot(BaseModel):
    provider: str
    display_name: Optional[str] = None
    color: Optional[str] = None
    latency_avg: Optional[int] = None
    latency_p95: Optional[int] = None
    reliability_rate: Optional[int] = None
    throughput_rps: Optional[float] = None
    completeness_score: Optional[int] = None
    coverage_pct: Optional[int] = None
    avg_deviation: Optional[float] = None


class TrendPoint(BaseModel):
    id: str
    timestamp: datetime
    providers: List[ProviderSnapshot]


def _utc_naive(ts: datetime) -> datetime:
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def _snapshots(run: Run) -> List[dict]:
    if isinstance(run, BenchmarkRun):
        return [{
            "provider": r.provider, "display_name": r.display_name, "color": r.color,
            "latency_avg": r.latency.avg, "latency_p95": r.latency.p95,
            "success_rate": r.reliability.success_rate,
            "throughput_rps": r.throughput.requests_per_second,
            "completeness_score": r.completeness.score,
        } for r in run.results]
    if isinstance(run, PricingRun):
        return [{
            "provider": r.provider, "display_name": r.display_name, "color": r.color,
            "coverage_pct": r.coverage_percent, "avg_deviation": r.avg_deviation,
        } for r in run.provider_results]
    return [{
        "provider": r.provider, "display_name": r.display_name, "color": r.color,
        "latency_avg": r.latency_ms, "success_rate": 100 if r.success else 0,
        "nft_count": r.nft_count,
    } for r in run.results]


class RunStore(ABC):
    """Persistence contract the orchestrator and API depend on."""

    @abstractmethod
    def save(self, run: Run, trigger_type: TriggerType = TriggerType.MANUAL) -> str: ...

    @abstractmethod
    def get_by_id(self, run_id: str) -> Optional[Run]: ...

    @abstractmethod
    def list_recent(self, limit: int = 50, offset: int = 0, kind: Optional[str] = None) -> List[Run]: ...

    @abstractmethod
    def count(self, kind: Optional[str] = None) -> int: ...

    @abstractmethod
    def latency_trends(self, limit: int = 30) -> List[TrendPoint]: ...

    @abstractmethod
    def coverage_trends(self, limit: int = 30) -> List[TrendPoint]: ...

    @abstractmethod
    def has_recent_scheduled_run(self, within_minutes: int = 15) -> bool: ...


class SqlRunStore(RunStore):
    """SQLAlchemy Core implementation; any SQLAlchemy URL works, SQLite by default."""

    def __init__(self, database_url: str = "sqlite:///data/chainbench.db"):
        url = make_url(database_url)
        connect_args = {}
        if url.get_backend_name() == "sqlite":
            connect_args["check_same_thread"] = False
            if url.database and url.database != ":memory:":
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(url, connect_args=connect_args)
        metadata.create_all(self.engine)
        logger.info(f"Run store ready on {url.render_as_string(hide_password=True)}")

    def save(self, run: Run, trigger_type: TriggerType = TriggerType.MANUAL) -> str:
        with self.engine.begin() as conn:
            conn.execute(benchmark_runs.insert().values(
                id=run.id,
                kind=run.kind,
                chain=run.chain,
                wallet_address=getattr(run, "wallet_address", None),
                trigger_type=TriggerType(trigger_type).value,
                status=run.status.value,
                created_at=_utc_naive(run.timestamp),
                payload=run.model_dump(mode="json"),
            ))
            rows = _snapshots(run)
            if rows:
                conn.execute(provider_snapshots.insert(), [dict(row, run_id=run.id) for row in rows])
        logger.debug(f"Saved {run.kind} run {run.id} ({len(rows)} providers)")
        return run.id

    @staticmethod
    def _to_run(row) -> Run:
        return RUN_TYPES[row.kind].model_validate(row.payload)

    def get_by_id(self, run_id: str) -> Optional[Run]:
        with self.engine.connect() as conn:
            row = conn.execute(select(benchmark_runs).where(benchmark_runs.c.id == run_id)).first()
        return self._to_run(row) if row else None

    def list_recent(self, limit: int = 50, offset: int = 0, kind: Optional[str] = None) -> List[Run]:
        query = select(benchmark_runs).order_by(benchmark_runs.c.created_at.desc()).limit(limit).offset(offset)
        if kind:
            query = query.where(benchmark_runs.c.kind == kind)
        with self.engine.connect() as conn:
            return [self._to_run(row) for row in conn.execute(query)]

    def count(self, kind: Optional[str] = None) -> int:
        query = select(func.count()).select_from(benchmark_runs)
        if kind:
            query = query.where(benchmark_runs.c.kind == kind)
        with self.engine.connect() as conn:
            return int(conn.execute(query).scalar_one())

    def _trends(self, kind: str, limit: int) -> List[TrendPoint]:
        runs_query = (
            select(benchmark_runs.c.id, benchmark_runs.c.created_at)
            .where(benchmark_runs.c.kind == kind, benchmark_runs.c.status == "completed")
            .order_by(benchmark_runs.c.created_at.desc())
            .limit(limit)
        )
        with self.engine.connect() as conn:
            runs = list(reversed(conn.execute(runs_query).all()))
            ids = [r.id for r in runs]
            snaps = conn.execute(
                select(provider_snapshots).where(provider_snapshots.c.run_id.in_(ids)).order_by(provider_snapshots.c.id)
            ).all() if ids else []

        by_run: Dict[str, List[ProviderSnapshot]] = {i: [] for i in ids}
        for s in snaps:
            by_run[s.run_id].append(ProviderSnapshot(
                provider=s.provider, display_name=s.display_name, color=s.color,
                latency_avg=s.latency_avg, latency_p95=s.latency_p95, reliability_rate=s.success_rate,
                throughput_rps=s.throughput_rps, completeness_score=s.completeness_score,
                coverage_pct=s.coverage_pct, avg_deviation=s.avg_deviation,
            ))
        return [
            TrendPoint(id=r.id, timestamp=r.created_at.replace(tzinfo=timezone.utc), providers=by_run[r.id])
            for r in runs
        ]

    def latency_trends(self, limit: int = 30) -> List[TrendPoint]:
        return self._trends("balances", limit)

    def coverage_trends(self, limit: int = 30) -> List[TrendPoint]:
        return self._trends("pricing", limit)

    def has_recent_scheduled_run(self, within_minutes: int = 15) -> bool:
        cutoff = _utc_naive(datetime.now(timezone.utc) - timedelta(minutes=within_minutes))
        query = (
            select(benchmark_runs.c.id)
            .where(
                benchmark_runs.c.trigger_type == TriggerType.SCHEDULED.value,
                benchmark_runs.c.status == "completed",
                benchmark_runs.c.created_at >= cutoff,
            )
            .limit(1)
        )
        with self.engine.connect() as conn:
            return conn.execute(query).first() is not None

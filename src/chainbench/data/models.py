from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict
from datetime import datetime, timezone
from enum import Enum
import uuid


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class TokenCategory(str, Enum):
    BLUE_CHIP = "blue-chip"
    STABLECOIN = "stablecoin"
    DEFI = "defi"
    LONG_TAIL = "long-tail"


class RunStatus(str, Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    AGGREGATING = "aggregating"
    COMPLETED = "completed"
    ERROR = "error"


class TriggerType(str, Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class TokenRecord(Frozen):
    token_address: Optional[str] = None
    name: Optional[str] = None
    symbol: Optional[str] = None
    decimals: Optional[int] = None
    logo_url: Optional[str] = None
    balance: Optional[str] = None  # raw integer string
    balance_usd: Optional[float] = None
    price_usd: Optional[float] = None
    price_24h_change: Optional[float] = None
    contract_type: Optional[str] = None
    is_spam: Optional[bool] = None
    last_transfer_date: Optional[str] = None


COMPLETENESS_FIELDS = tuple(TokenRecord.model_fields)


class LatencyStats(Frozen):
    avg: int
    min: int
    max: int
    p95: int
    samples: List[int] = Field(default_factory=list)
    empty: bool = False


class CompletenessResult(Frozen):
    score: int
    total_fields: int = len(COMPLETENESS_FIELDS)
    present_fields: int
    field_breakdown: Dict[str, bool]
    tokens_returned: int


class ReliabilityResult(Frozen):
    success_rate: int
    total_requests: int
    successful_requests: int
    failed_requests: int
    errors: List[str] = Field(default_factory=list)


class ThroughputResult(Frozen):
    requests_per_second: float
    concurrent_requests: int
    completed_in_window: int
    window_ms: int


class ProviderBenchmarkResult(Frozen):
    provider: str
    display_name: str
    color: str
    latency: LatencyStats
    completeness: CompletenessResult
    reliability: ReliabilityResult
    throughput: ThroughputResult
    raw_data_sample: List[TokenRecord] = Field(default_factory=list)


class PricingToken(Frozen):
    address: str
    symbol: str
    name: str
    category: TokenCategory
    chain_id: int


class TokenPriceResult(Frozen):
    token: PricingToken
    prices: Dict[str, Optional[float]]
    consensus_price: Optional[float] = None
    deviations: Dict[str, Optional[float]]


class CategoryBreakdown(Frozen):
    covered: int
    total: int
    avg_deviation: Optional[float] = None


class PricingBenchmarkResult(Frozen):
    provider: str
    display_name: str
    color: str
    tokens_covered: int
    total_tokens: int
    coverage_percent: int
    avg_deviation: Optional[float] = None
    max_deviation: Optional[float] = None
    latency_ms: int
    category_breakdown: Dict[str, CategoryBreakdown]


class NftBenchmarkResult(Frozen):
    provider: str
    display_name: str
    color: str
    nft_count: int
    latency_ms: int
    success: bool
    error: Optional[str] = None


class RunBase(Frozen):
    id: str = Field(default_factory=_new_id)
    timestamp: datetime = Field(default_factory=_now)
    chain: str
    status: RunStatus = RunStatus.COMPLETED
    skipped_providers: List[str] = Field(default_factory=list)
    incomplete_providers: List[str] = Field(default_factory=list)


class BenchmarkRun(RunBase):
    kind: str = "balances"
    wallet_address: str
    results: List[ProviderBenchmarkResult] = Field(default_factory=list)


class PricingRun(RunBase):
    kind: str = "pricing"
    token_results: List[TokenPriceResult] = Field(default_factory=list)
    provider_results: List[PricingBenchmarkResult] = Field(default_factory=list)


class NftRun(RunBase):
    kind: str = "nfts"
    wallet_address: str
    results: List[NftBenchmarkResult] = Field(default_factory=list)

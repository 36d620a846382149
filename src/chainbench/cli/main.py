"""
chainbench CLI - run provider benchmarks and browse stored runs from the terminal
"""
import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional

import click
# Rich CLI
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
# Logging
from loguru import logger
# Env
from dotenv import load_dotenv

from .. import __version__
from ..benchmark.orchestrator import BenchmarkOrchestrator
from ..data.chains import SUPPORTED_CHAINS
from ..data.config import ConfigManager
from ..data.keys import EnvKeyResolver
from ..data.models import BenchmarkRun, NftRun, PricingRun
from ..data.registry import ProviderName
from ..data.sources.base import ChainbenchError
from ..storage.store import SqlRunStore

load_dotenv()
console = Console()

PROVIDER_CHOICES = [p.value for p in ProviderName]
CHAIN_CHOICES = [c.id for c in SUPPORTED_CHAINS]


def setup_logging():
    logger.remove()
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    debug_mode = os.getenv("DEBUG", "false").lower() == "true"
    if debug_mode:
        log_level = "DEBUG"
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=log_level,
        colorize=True
    )
    log_dir = Path("logs"); log_dir.mkdir(exist_ok=True)
    logger.add(
        log_dir / "chainbench_{time:YYYY-MM-DD}.log",
        rotation="1 day",
        retention="30 days",
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG"
    )
    logger.debug("Logging system configured")


def build_orchestrator(persist: bool = True) -> BenchmarkOrchestrator:
    config = ConfigManager()
    store = SqlRunStore(config.database_url) if persist else None
    return BenchmarkOrchestrator(key_resolver=EnvKeyResolver(), store=store, config=config)


def _providers(names) -> List[str]:
    return list(names) if names else PROVIDER_CHOICES


def _ms(value: int, empty: bool = False) -> str:
    return "-" if empty else f"{value}ms"


def _pct(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:.2f}%"


def _report_skips(run):
    if run.skipped_providers:
        console.print(f"[yellow]Skipped (no key or unsupported): {', '.join(run.skipped_providers)}[/yellow]")
    if run.incomplete_providers:
        console.print(f"[red]Did not finish before the run deadline: {', '.join(run.incomplete_providers)}[/red]")


def display_balance_run(run: BenchmarkRun):
    table = Table(title=f"Balance Benchmark · {run.chain} · {run.wallet_address}")
    table.add_column("Provider", style="cyan")
    table.add_column("Avg", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("P95", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("RPS", justify="right", style="magenta")
    table.add_column("Completeness", justify="right", style="blue")
    table.add_column("Tokens", justify="right", style="dim")
    for r in sorted(run.results, key=lambda r: (r.latency.empty, r.latency.avg)):
        rate = r.reliability.success_rate
        rate_color = "green" if rate >= 95 else "yellow" if rate >= 80 else "red"
        table.add_row(
            r.display_name,
            _ms(r.latency.avg, r.latency.empty),
            _ms(r.latency.min, r.latency.empty),
            _ms(r.latency.max, r.latency.empty),
            _ms(r.latency.p95, r.latency.empty),
            f"[{rate_color}]{rate}%[/{rate_color}]",
            f"{r.throughput.requests_per_second:.2f}",
            f"{r.completeness.score}% ({r.completeness.present_fields}/{r.completeness.total_fields})",
            str(r.completeness.tokens_returned),
        )
    console.print(table)
    for r in run.results:
        for err in r.reliability.errors:
            console.print(f"[dim]{r.provider}: {err}[/dim]")
    _report_skips(run)


def display_pricing_run(run: PricingRun, show_tokens: bool = False):
    table = Table(title=f"Pricing Benchmark · {run.chain}")
    table.add_column("Provider", style="cyan")
    table.add_column("Coverage", justify="right")
    table.add_column("Avg Dev", justify="right")
    table.add_column("Max Dev", justify="right")
    table.add_column("Latency", justify="right")
    categories = sorted({c for r in run.provider_results for c in r.category_breakdown})
    for category in categories:
        table.add_column(category, justify="right", style="dim")
    for r in sorted(run.provider_results, key=lambda r: -r.coverage_percent):
        row = [
            r.display_name,
            f"{r.coverage_percent}% ({r.tokens_covered}/{r.total_tokens})",
            _pct(r.avg_deviation),
            _pct(r.max_deviation),
            f"{r.latency_ms}ms",
        ]
        for category in categories:
            cb = r.category_breakdown.get(category)
            row.append(f"{cb.covered}/{cb.total}" if cb else "-")
        table.add_row(*row)
    console.print(table)

    if show_tokens:
        names = [r.provider for r in run.provider_results]
        tokens = Table(title="Token prices")
        tokens.add_column("Token", style="cyan")
        tokens.add_column("Consensus", justify="right", style="green")
        for name in names:
            tokens.add_column(name, justify="right")
        for tr in run.token_results:
            consensus = tr.consensus_price
            cells = [f"{tr.token.symbol}", "-" if consensus is None else f"${consensus:,.6g}"]
            for name in names:
                price = tr.prices.get(name)
                dev = tr.deviations.get(name)
                cells.append("-" if price is None else f"${price:,.6g} ({_pct(dev)})")
            tokens.add_row(*cells)
        console.print(tokens)
    _report_skips(run)


def display_nft_run(run: NftRun):
    table = Table(title=f"NFT Benchmark · {run.chain} · {run.wallet_address}")
    table.add_column("Provider", style="cyan")
    table.add_column("NFTs", justify="right")
    table.add_column("Latency", justify="right")
    table.add_column("Status")
    for r in run.results:
        status = "[green]OK[/green]" if r.success else f"[red]{r.error}[/red]"
        table.add_row(r.display_name, str(r.nft_count), f"{r.latency_ms}ms", status)
    console.print(table)
    _report_skips(run)


# CLI Command Group
@click.group()
@click.option('--config', '-c', help='Path to configuration file')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, config, debug):
    """chainbench - benchmark blockchain data API providers"""
    ctx.ensure_object(dict)
    ctx.obj['config'] = config
    ctx.obj['debug'] = debug
    if debug:
        os.environ['DEBUG'] = 'true'
    if config:
        os.environ['CHAINBENCH_CONFIG'] = config
        ConfigManager.reset()
    setup_logging()


def _run(coro, what: str):
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        console.print(f"\n[yellow]{what} cancelled by user[/yellow]")
    except ChainbenchError as e:
        console.print(f"[red]{what} failed: {e}[/red]")
        sys.exit(2)


@cli.command()
@click.argument('wallet')
@click.option('--chain', type=click.Choice(CHAIN_CHOICES), help='Chain to query')
@click.option('--provider', '-p', 'providers', multiple=True, type=click.Choice(PROVIDER_CHOICES),
              help='Provider to benchmark (can specify multiple, default all)')
@click.option('--iterations', '-n', type=int, help='Sequential latency samples per provider')
@click.option('--concurrency', type=int, help='Parallel requests in the throughput burst')
@click.option('--no-save', is_flag=True, help='Do not persist the run')
def balances(wallet, chain, providers, iterations, concurrency, no_save):
    """Benchmark wallet balance endpoints"""
    async def run_balances():
        bot = build_orchestrator(persist=not no_save)
        with console.status("Benchmarking balance endpoints..."):
            return await bot.run_balance_benchmark(wallet, chain, _providers(providers), iterations, concurrency)

    run = _run(run_balances(), "Balance benchmark")
    if run is not None:
        display_balance_run(run)
        console.print(f"[dim]Run id: {run.id}[/dim]")


@cli.command()
@click.option('--chain', type=click.Choice(CHAIN_CHOICES), help='Chain to price tokens on')
@click.option('--provider', '-p', 'providers', multiple=True, type=click.Choice(PROVIDER_CHOICES),
              help='Provider to benchmark (can specify multiple, default all)')
@click.option('--tokens', 'show_tokens', is_flag=True, help='Show the per-token price table')
@click.option('--no-save', is_flag=True, help='Do not persist the run')
def pricing(chain, providers, show_tokens, no_save):
    """Compare token prices against the cross-provider consensus"""
    async def run_pricing():
        bot = build_orchestrator(persist=not no_save)
        with console.status("Fetching price batches..."):
            return await bot.run_pricing_benchmark(chain=chain, providers=_providers(providers))

    run = _run(run_pricing(), "Pricing benchmark")
    if run is not None:
        display_pricing_run(run, show_tokens)
        console.print(f"[dim]Run id: {run.id}[/dim]")


@cli.command()
@click.argument('wallet')
@click.option('--chain', type=click.Choice(CHAIN_CHOICES), help='Chain to query')
@click.option('--provider', '-p', 'providers', multiple=True, type=click.Choice(PROVIDER_CHOICES),
              help='Provider to benchmark (can specify multiple, default all)')
@click.option('--no-save', is_flag=True, help='Do not persist the run')
def nfts(wallet, chain, providers, no_save):
    """Count a wallet's NFTs on every provider that supports it"""
    async def run_nfts():
        bot = build_orchestrator(persist=not no_save)
        return await bot.run_nft_benchmark(wallet, chain, _providers(providers))

    run = _run(run_nfts(), "NFT benchmark")
    if run is not None:
        display_nft_run(run)


@cli.command()
@click.option('--type', 'kind', type=click.Choice(['balances', 'pricing', 'nfts']), help='Only show one run type')
@click.option('--limit', type=click.IntRange(1, 100), default=20, help='Number of runs to show')
@click.option('--offset', type=click.IntRange(0), default=0)
@click.option('--show', 'run_id', help='Print the full report for one run id')
def history(kind, limit, offset, run_id):
    """Browse stored benchmark runs"""
    store = SqlRunStore(ConfigManager().database_url)
    if run_id:
        run = store.get_by_id(run_id)
        if run is None:
            console.print(f"[red]Run {run_id} not found[/red]")
            sys.exit(1)
        if isinstance(run, BenchmarkRun):
            display_balance_run(run)
        elif isinstance(run, PricingRun):
            display_pricing_run(run, show_tokens=True)
        else:
            display_nft_run(run)
        return

    runs = store.list_recent(limit, offset, kind=kind)
    if not runs:
        console.print("[yellow]No runs stored yet[/yellow]")
        return
    table = Table(title=f"Stored runs ({store.count(kind)} total)")
    table.add_column("ID", style="dim")
    table.add_column("When", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Chain")
    table.add_column("Providers", justify="right")
    for run in runs:
        count = len(run.provider_results) if isinstance(run, PricingRun) else len(run.results)
        table.add_row(run.id, run.timestamp.strftime("%Y-%m-%d %H:%M:%S"), run.kind, run.chain, str(count))
    console.print(table)


@cli.command()
@click.option('--limit', type=click.IntRange(1, 100), default=10, help='Number of recent runs per series')
def trends(limit):
    """Show latency and coverage trends across recent runs"""
    store = SqlRunStore(ConfigManager().database_url)

    latency = store.latency_trends(limit)
    table = Table(title="Average latency (ms)")
    table.add_column("Run", style="cyan")
    providers = sorted({s.provider for p in latency for s in p.providers})
    for name in providers:
        table.add_column(name, justify="right")
    for point in latency:
        by_name = {s.provider: s for s in point.providers}
        table.add_row(point.timestamp.strftime("%m-%d %H:%M"),
                      *[str(by_name[n].latency_avg) if n in by_name else "-" for n in providers])
    console.print(table)

    coverage = store.coverage_trends(limit)
    table = Table(title="Pricing coverage (%)")
    table.add_column("Run", style="cyan")
    providers = sorted({s.provider for p in coverage for s in p.providers})
    for name in providers:
        table.add_column(name, justify="right")
    for point in coverage:
        by_name = {s.provider: s for s in point.providers}
        table.add_row(point.timestamp.strftime("%m-%d %H:%M"),
                      *[str(by_name[n].coverage_pct) if n in by_name else "-" for n in providers])
    console.print(table)


@cli.command()
def keys():
    """Show which providers have server-side API keys"""
    table = Table(title="API keys")
    table.add_column("Provider", style="cyan")
    table.add_column("Status")
    table.add_column("Key", style="dim")
    for provider, status in EnvKeyResolver().key_status().items():
        if status["has_env_key"]:
            table.add_row(provider, "[green]CONFIGURED[/green]", status["masked"])
        else:
            table.add_row(provider, "[red]NOT CONFIGURED[/red]", "")
    console.print(table)


@cli.command()
@click.option('--host', default='127.0.0.1', help='Interface to bind')
@click.option('--port', default=8000, type=int, help='Port to listen on')
@click.option('--reload', is_flag=True, help='Reload on code changes')
def serve(host, port, reload):
    """Start the HTTP API"""
    import uvicorn

    console.print(Panel.fit(f"chainbench API v{__version__}\nhttp://{host}:{port}/docs", style="bold blue"))
    uvicorn.run("chainbench.interfaces:app", host=host, port=port, reload=reload)


@cli.command()
def version():
    """Show version information"""
    console.print(f"[bold blue]chainbench[/bold blue] {__version__}")


def main():
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()

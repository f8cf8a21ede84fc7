#!/usr/bin/env python3
"""
Environment smoke test.
Validates configuration and reports which data providers can serve data.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config.settings import Settings
from market_data.registry import availability_report, build_adapters, build_cache


console = Console()


def _minutes(ms: int) -> str:
    if ms % 3_600_000 == 0:
        return f"{ms // 3_600_000}h"
    if ms % 60_000 == 0:
        return f"{ms // 60_000}m"
    return f"{ms}ms"


def main() -> int:
    """Run environment smoke test."""
    settings = Settings()

    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL)

    console.print("\n[bold blue]🔍 Environment Smoke Test[/bold blue]\n")

    masked = settings.masked_dict()

    # Core settings
    console.print("[bold]Configuration Summary:[/bold]")
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="dim")
    table.add_column("Value")
    for name in ("LOG_LEVEL", "CACHE_DIR", "HTTP_TIMEOUT", "HTTP_MAX_RETRIES"):
        table.add_row(name, str(masked[name]))
    console.print(table)
    console.print()

    cache = build_cache(settings)
    adapters = build_adapters(settings, cache)

    # Provider availability
    console.print("[bold]Data Providers:[/bold]")
    provider_table = Table(show_header=True, header_style="bold cyan")
    provider_table.add_column("Provider", style="dim")
    provider_table.add_column("Status")
    provider_table.add_column("Credential")
    provider_table.add_column("TTL success / no-data / rate-limit")

    for row in availability_report(adapters):
        adapter = adapters[row["name"]]
        if row["credential"] is None:
            credential = "Not needed"
        else:
            credential = masked.get(row["credential"]) or ("Not set" if row["required"] else "Not set (optional)")
        if row["available"]:
            status = "✅" if adapter.api_key or row["credential"] is None else "⚪ anonymous"
        else:
            status = "❌"
        ttls = adapter.ttls
        provider_table.add_row(
            adapter.label,
            status,
            credential,
            f"{_minutes(ttls.success_ms)} / {_minutes(ttls.no_data_ms)} / {_minutes(ttls.rate_limit_ms)}",
        )

    console.print(provider_table)
    console.print()

    # Cache tier
    stats = cache.get_stats().as_dict()
    persistence = "available" if cache.persistence.available else "unavailable (memory only)"
    console.print(Panel(
        f"Directory: {cache.persistence.cache_dir}\nPersistence: {persistence}\n"
        f"Entries in memory: {stats['size']}",
        title="Cache",
        style="green" if cache.persistence.available else "yellow",
    ))
    cache.close()

    # Final validation
    keyed = [row for row in availability_report(adapters) if row["required"]]
    if not any(row["available"] for row in keyed):
        console.print("\n[bold red]❌ Smoke test FAILED - no credential-requiring provider is configured[/bold red]")
        console.print("[dim]- Set ALPHA_VANTAGE_API_KEY, FRED_API_KEY or NASDAQ_DATA_LINK_API_KEY[/dim]\n")
        return 1

    missing = [row["name"] for row in keyed if not row["available"]]
    if missing:
        console.print("\n[bold yellow]Warnings:[/bold yellow]")
        for name in missing:
            console.print(f"  ⚠️  {adapters[name].label} unavailable ({adapters[name].api_key_field} not set)")

    console.print("\n[bold green]✅ Smoke test PASSED - environment looks good![/bold green]\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())

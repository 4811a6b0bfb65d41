"""
Panopticon CLI - derive addresses and watch balances and history over Electrum.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import typer
from loguru import logger
from pydantic import ValidationError

from panopticon.config import Settings
from panopticon.errors import AddressError
from panopticon.models import ElectrumServer, HistoryUpdate
from panopticon.service import WatchService
from panopticon.wallet.address import address_to_scripthash
from panopticon.wallet.derivation import AddressDeriver

app = typer.Typer(
    name="panopticon",
    help="Watch-only Bitcoin balance and transaction monitor (Electrum protocol)",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def build_settings(
    servers: list[str] | None = None,
    network: str | None = None,
    insecure_tls: bool = False,
    data_dir: Path | None = None,
) -> Settings:
    """Load settings from env/.env and apply command-line overrides."""
    overrides: dict = {}
    if servers:
        overrides["electrum_servers"] = [ElectrumServer.parse(s) for s in servers]
    if network:
        overrides["network"] = network
    if insecure_tls:
        overrides["allow_insecure_tls"] = True
    if data_dir:
        overrides["data_dir"] = data_dir
    return Settings(**overrides)


def _load_settings(
    servers: list[str] | None,
    network: str | None,
    insecure_tls: bool,
    data_dir: Path | None = None,
) -> Settings:
    try:
        return build_settings(servers, network, insecure_tls, data_dir)
    except (ValidationError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        raise typer.Exit(1)


def _format_btc(amount: float) -> str:
    return f"{amount:.8f} BTC"


@app.command()
def derive(
    key: str = typer.Argument(..., help="Extended public key (xpub/ypub/zpub)"),
    start: int = typer.Option(0, "--start", help="First address index"),
    count: int = typer.Option(20, "--count", "-c", help="Number of addresses"),
    network: str = typer.Option(None, "--network", "-n", envvar="PANOPTICON_NETWORK"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Derive receiving addresses (m/0/i) from an extended public key."""
    setup_logging(log_level)

    if not WatchService.is_extended_key(key):
        logger.error("Key must start with xpub, ypub or zpub")
        raise typer.Exit(1)
    if start < 0 or count < 0:
        logger.error("--start and --count must be non-negative")
        raise typer.Exit(1)

    settings = _load_settings(None, network, False)
    deriver = AddressDeriver(settings.network)
    addresses = deriver.derive_addresses(key, start, count)
    if count and not addresses:
        logger.error("Failed to derive addresses from key")
        raise typer.Exit(1)

    typer.echo(f"{WatchService.label_for(key)}")
    for offset, address in enumerate(addresses):
        typer.echo(f"  #{start + offset:<5} {address}")


@app.command()
def scripthash(
    address: str = typer.Argument(..., help="Bitcoin address"),
    network: str = typer.Option(None, "--network", "-n", envvar="PANOPTICON_NETWORK"),
) -> None:
    """Print the Electrum scripthash of an address."""
    setup_logging("WARNING")
    settings = _load_settings(None, network, False)
    try:
        typer.echo(address_to_scripthash(address, settings.network))
    except AddressError as e:
        logger.error(f"Invalid address: {e}")
        raise typer.Exit(1)


@app.command()
def balance(
    target: str = typer.Argument(..., help="Address or extended public key"),
    start: int = typer.Option(0, "--start", help="First index when target is an extended key"),
    count: int = typer.Option(20, "--count", "-c", help="Addresses to scan for extended keys"),
    usd: bool = typer.Option(False, "--usd", help="Also show the USD value"),
    server: list[str] | None = typer.Option(
        None, "--server", "-s", help="Electrum server host:port[:s|t] (repeatable)"
    ),
    network: str = typer.Option(None, "--network", "-n", envvar="PANOPTICON_NETWORK"),
    insecure_tls: bool = typer.Option(
        False, "--insecure-tls", help="Do not validate Electrum server TLS certificates"
    ),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Show the balance of an address or of an extended key's address window."""
    setup_logging(log_level)
    settings = _load_settings(server, network, insecure_tls)
    ok = asyncio.run(_show_balance(settings, target, start, count, usd))
    if not ok:
        raise typer.Exit(1)


async def _show_balance(
    settings: Settings, target: str, start: int, count: int, usd: bool
) -> bool:
    """Show balance implementation."""
    service = WatchService.from_settings(settings)
    try:
        if service.is_extended_key(target):
            derived = service.describe_derived(target, start, count)
            if count and not derived:
                logger.error("Failed to derive addresses from key")
                return False

            total = 0.0
            failed = 0
            for entry in derived:
                amount = await service.get_balance(entry.address)
                if amount is None:
                    failed += 1
                    typer.echo(f"  {entry.label:<40} {entry.address}  unavailable")
                    continue
                total += amount
                typer.echo(f"  {entry.label:<40} {entry.address}  {_format_btc(amount)}")

            if failed:
                typer.echo("\nTotal Balance: unavailable")
                logger.error(f"Balance lookup failed for {failed} of {len(derived)} addresses")
                return False
            amount = total
        else:
            amount = await service.get_balance(target)
            if amount is None:
                logger.error(f"Could not fetch balance for {target}")
                return False

        typer.echo(f"\nTotal Balance: {_format_btc(amount)}")
        if usd:
            usd_value = await service.convert_to_usd(amount)
            if usd_value is None:
                logger.warning("BTC-USD rate unavailable")
            else:
                typer.echo(f"USD Value:     ${usd_value:,.2f}")
        return True
    finally:
        await service.close()


@app.command()
def history(
    address: str = typer.Argument(..., help="Bitcoin address"),
    server: list[str] | None = typer.Option(None, "--server", "-s"),
    network: str = typer.Option(None, "--network", "-n", envvar="PANOPTICON_NETWORK"),
    insecure_tls: bool = typer.Option(False, "--insecure-tls"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """List the transaction history of an address."""
    setup_logging(log_level)
    settings = _load_settings(server, network, insecure_tls)
    ok = asyncio.run(_show_history(settings, address))
    if not ok:
        raise typer.Exit(1)


async def _show_history(settings: Settings, address: str) -> bool:
    service = WatchService.from_settings(settings)
    try:
        records = await service.get_history(address)
        if records is None:
            logger.error(f"Could not fetch history for {address}")
            return False
        if not records:
            typer.echo("No transactions.")
        for record in records:
            typer.echo(f"{record.tx_hash} ({record.status})")
        return True
    finally:
        await service.close()


def format_update(address: str, update: HistoryUpdate) -> list[str]:
    lines = []
    if update.new_mempool:
        lines.append(f"New mempool transactions for {address}: {', '.join(update.new_mempool)}")
    if update.confirmed_from_mempool:
        lines.append(
            f"Transactions confirmed from mempool for {address}: "
            f"{', '.join(update.confirmed_from_mempool)}"
        )
    if update.new_confirmed:
        lines.append(
            f"New confirmed transactions for {address}: {', '.join(update.new_confirmed)}"
        )
    return lines


@app.command()
def poll(
    address: str = typer.Argument(..., help="Bitcoin address"),
    interval: int = typer.Option(
        0, "--interval", "-i", help="Repeat every N seconds (0 = poll once)"
    ),
    server: list[str] | None = typer.Option(None, "--server", "-s"),
    network: str = typer.Option(None, "--network", "-n", envvar="PANOPTICON_NETWORK"),
    insecure_tls: bool = typer.Option(False, "--insecure-tls"),
    data_dir: Path | None = typer.Option(
        None, "--data-dir", "-d", envvar="PANOPTICON_DATA_DIR", help="Transaction cache directory"
    ),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Check an address for new or newly confirmed transactions."""
    setup_logging(log_level)
    if interval < 0:
        logger.error("--interval must be non-negative")
        raise typer.Exit(1)
    settings = _load_settings(server, network, insecure_tls, data_dir)
    try:
        ok = asyncio.run(_poll(settings, address, interval))
    except KeyboardInterrupt:
        logger.info("Stopped")
        return
    if not ok:
        raise typer.Exit(1)


async def _poll(settings: Settings, address: str, interval: int) -> bool:
    service = WatchService.from_settings(settings)
    try:
        while True:
            update = await service.poll(address)
            if update is None:
                logger.error(f"Could not fetch history for {address}")
                if not interval:
                    return False
            else:
                lines = format_update(address, update)
                for line in lines:
                    typer.echo(line)
                if not lines:
                    logger.info(f"No new transactions for {address}")
                logger.debug(f"Transaction cache: {service.transaction_cache.snapshot()}")

            if not interval:
                return True
            await asyncio.sleep(interval)
    finally:
        await service.close()


@app.command()
def rate(
    amount: float = typer.Argument(1.0, help="BTC amount to convert"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Convert a BTC amount to USD."""
    setup_logging(log_level)
    settings = _load_settings(None, None, False)
    value = asyncio.run(_convert(settings, amount))
    if value is None:
        logger.error("BTC-USD rate unavailable")
        raise typer.Exit(1)
    typer.echo(f"{_format_btc(amount)} = ${value:,.2f}")


async def _convert(settings: Settings, amount: float) -> float | None:
    service = WatchService.from_settings(settings)
    try:
        return await service.convert_to_usd(amount, force_refresh=True)
    finally:
        await service.close()


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()

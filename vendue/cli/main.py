"""
Vendue CLI - Command Line Interface for the auction engine

Main entry point for all CLI commands.
"""

import logging
from pathlib import Path

import click

from vendue.core.config import load_config
from vendue.utils.logger import VendueLogger, get_logger, setup_logging


def _open_ledger(ctx):
    """Open the persisted ledger and register the auction program."""
    from vendue.core.auction import AuctionProgram
    from vendue.core.state import Ledger
    from vendue.core.storage import StorageManager

    config = ctx.obj["config"]
    storage = StorageManager(config.data_dir, db_name=config.db_name)
    ledger = Ledger(storage_manager=storage)
    program = AuctionProgram(ledger, config=config)
    return ledger, program


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default=None, help="Data directory (default from config)")
@click.option("--config", "config_path", default=None, help="Path to a VENDUE_* dotenv file")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, data_dir, config_path):
    """Vendue - English auction escrow engine"""
    config = load_config(config_path)
    if data_dir:
        config.data_dir = Path(data_dir).expanduser()

    level = logging.DEBUG if debug else getattr(logging, config.log_level.upper(), logging.INFO)
    VendueLogger.reset()
    setup_logging(level=level, log_dir=str(config.log_dir), log_to_file=config.log_to_file)

    config.ensure_directories()
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.option("--auction-id", default=7, type=int, help="Auction id to create")
@click.option("--min-bid", default=5, type=int, help="Minimum bid")
@click.option("--duration", default=60, type=int, help="Auction duration in ticks")
@click.pass_context
def demo(ctx, auction_id, min_bid, duration):
    """Run a full auction: create, two bids, settle"""
    from vendue.core.auction import AuctionClient
    from vendue.core.errors import AuctionError
    from vendue.crypto import bytes_to_hex, generate_keypair

    logger = get_logger("cli")
    ledger, program = _open_ledger(ctx)

    click.echo("=" * 60)
    click.echo("  VENDUE - ENGLISH AUCTION DEMO")
    click.echo("=" * 60)
    click.echo()

    seller = AuctionClient(program, generate_keypair())
    alice = AuctionClient(program, generate_keypair())
    bob = AuctionClient(program, generate_keypair())

    ledger.fund(seller.address, 1)
    ledger.fund(alice.address, 100)
    ledger.fund(bob.address, 100)
    asset_id = ledger.mint_asset(seller.address)

    click.echo("📦 Accounts funded, asset minted")
    click.echo(f"  Seller: {bytes_to_hex(seller.address)}")
    click.echo(f"  Alice:  {bytes_to_hex(alice.address)} (100)")
    click.echo(f"  Bob:    {bytes_to_hex(bob.address)} (100)")
    click.echo(f"  Asset:  {bytes_to_hex(asset_id)[:18]}...")
    click.echo()

    try:
        record = seller.create_auction(auction_id, asset_id, min_bid, duration)
        click.echo(f"🏛️  Auction {auction_id} open until t={record.end_time}")

        alice.place_bid(auction_id, min_bid)
        click.echo(f"  ✓ Alice bids {min_bid}")

        try:
            bob.place_bid(auction_id, min_bid)
        except AuctionError as exc:
            click.echo(f"  ✗ Bob bids {min_bid}: {exc.code.name}")

        record = bob.place_bid(auction_id, min_bid * 2)
        click.echo(f"  ✓ Bob bids {record.highest_bid}, Alice refunded {min_bid}")
        click.echo(f"  Escrow: {program.get_escrow(auction_id).balance}")
        click.echo()

        ledger.advance_time(duration)
        record = seller.end_auction(auction_id)
    except AuctionError as exc:
        logger.error(f"Demo aborted: {exc}")
        raise click.ClickException(str(exc))

    click.echo(f"⚖️  Settled: {record.status.name}")
    click.echo(f"  Bob holds asset: {ledger.get_asset_units(bob.address, asset_id) == 1}")
    click.echo(f"  Seller balance: {ledger.get_balance(seller.address)}")
    click.echo(f"  Alice balance:  {ledger.get_balance(alice.address)}")
    click.echo(f"  Escrow balance: {program.get_escrow(auction_id).balance}")
    click.echo()
    click.echo("✅ Demo complete!")


# =============================================================================
# Inspection Commands
# =============================================================================


@cli.command("show")
@click.argument("auction_id", type=int)
@click.pass_context
def show(ctx, auction_id):
    """Show an auction record and its escrow"""
    from vendue.crypto import bytes_to_hex

    ledger, program = _open_ledger(ctx)
    record = program.get_auction(auction_id)
    if record is None:
        raise click.ClickException(f"Auction {auction_id} not found")

    escrow = program.get_escrow(auction_id)
    custody = program.get_custody(auction_id)
    bidder = bytes_to_hex(record.highest_bidder) if record.highest_bidder else "-"

    click.echo(f"Auction {auction_id}")
    click.echo("-" * 40)
    click.echo(f"  Status:         {record.status.name}")
    click.echo(f"  Seller:         {bytes_to_hex(record.authority)}")
    click.echo(f"  Asset:          {bytes_to_hex(record.asset_id)}")
    click.echo(f"  Min bid:        {record.min_bid}")
    click.echo(f"  Window:         {record.start_time} .. {record.end_time} (now={ledger.current_time()})")
    click.echo(f"  Highest bid:    {record.highest_bid}")
    click.echo(f"  Highest bidder: {bidder}")
    click.echo(f"  Escrow:         {escrow.balance}")
    click.echo(f"  Custody units:  {custody.units}")


@cli.command("stats")
@click.pass_context
def stats(ctx):
    """Show ledger statistics"""
    ledger, _ = _open_ledger(ctx)
    click.echo("Vendue Ledger Statistics")
    click.echo("-" * 40)
    for key, value in ledger.stats().items():
        click.echo(f"  {key}: {value}")
    journal = ledger.storage_manager.load_journal()
    click.echo(f"  journal_entries: {len(journal)}")


if __name__ == "__main__":
    cli()

"""
Sealbid CLI - Command Line Interface for the sealed-bid engine

Main entry point for all CLI commands. Results are printed to stdout as
JSON; logs go to stderr.
"""

import functools
import json
import logging
from pathlib import Path

import click

from sealbid import __version__
from sealbid.core.auction import AuctionSnapshot, AuctionStatus, MarketPattern, apply_improvement, compute_hhi
from sealbid.core.auction.scoring import market_participation_score
from sealbid.core.book import AuctionBook
from sealbid.core.config import load_config
from sealbid.core.errors import SealBidError
from sealbid.crypto import to_hex32
from sealbid.utils.logger import get_logger, setup_logging
from sealbid.utils.validation import parse_uint

logger = get_logger("cli")


class UintParamType(click.ParamType):
    """uint256 given in decimal or 0x-hex."""

    name = "uint256"

    def convert(self, value, param, ctx):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        try:
            return parse_uint(value, param.name if param else "value")
        except ValueError as e:
            self.fail(str(e), param, ctx)


UINT256 = UintParamType()


def engine_errors(f):
    """Report engine errors as CLI errors (exit code 1)."""
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except SealBidError as e:
            raise click.ClickException(f"{type(e).__name__}: {e}")
    return wrapper


def _emit(data) -> None:
    click.echo(json.dumps(data, indent=2))


def _book(ctx) -> AuctionBook:
    obj = ctx.find_root().obj
    if "book" not in obj:
        try:
            obj["book"] = AuctionBook.open(obj["config"])
        except ValueError as e:
            raise click.ClickException(str(e))
        logger.debug(f"Opened book at {obj['config'].db_path}")
        ctx.call_on_close(obj["book"].close)
    return obj["book"]


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default=None, help="Data directory (overrides config)")
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
              help="dotenv file with SEALBID_* settings")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, debug, data_dir, config_path):
    """Sealed-bid commitment and settlement engine"""
    try:
        cfg = load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e))
    if data_dir:
        cfg.data_dir = Path(data_dir).expanduser()

    level = logging.DEBUG if debug else getattr(logging, cfg.log_level.upper(), logging.INFO)
    setup_logging(level=level, log_dir=str(cfg.log_dir), log_to_file=cfg.log_to_file)

    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


# =============================================================================
# Bidding Commands
# =============================================================================


@cli.command("seal")
@click.option("--bidder", required=True, help="Bidder address (0x...)")
@click.option("--auction", required=True, help="Auction address (0x...)")
@click.option("--amount", required=True, type=UINT256, help="Amount in base-asset minor units")
@click.option("--price", required=True, type=UINT256, help="Price in quote-asset minor units")
@click.option("--timestamp", default=None, type=UINT256, help="Creation time (default: now)")
@click.option("--record", is_flag=True, help="Register the nullifier and store the bid")
@click.pass_context
@engine_errors
def seal_cmd(ctx, bidder, auction, amount, price, timestamp, record):
    """Seal a bid and print its commitment, nullifier and salt"""
    book = _book(ctx)
    bid, salt = book.commit(bidder, auction, amount, price, timestamp=timestamp)
    if record:
        book.record(bid)
    _emit({"bid": bid.to_dict(), "salt": to_hex32(salt), "recorded": record})


@cli.command("reveal")
@click.argument("nullifier")
@click.option("--amount", required=True, type=UINT256, help="Sealed amount")
@click.option("--price", required=True, type=UINT256, help="Sealed price")
@click.option("--salt", required=True, help="Salt returned by seal (0x...)")
@click.pass_context
@engine_errors
def reveal_cmd(ctx, nullifier, amount, price, salt):
    """Reveal a recorded bid"""
    bid = _book(ctx).reveal(nullifier, amount, price, salt)
    _emit(bid.to_dict())


@cli.command("bids")
@click.argument("auction")
@click.option("--bidder", default=None, help="Only bids of this bidder")
@click.pass_context
@engine_errors
def bids_cmd(ctx, auction, bidder):
    """List stored bids of an auction in insertion order"""
    _emit([b.to_dict() for b in _book(ctx).bids(auction, bidder)])


@cli.command("nullifiers")
@click.argument("auction")
@click.pass_context
@engine_errors
def nullifiers_cmd(ctx, auction):
    """List registered nullifiers of an auction"""
    entries = _book(ctx).registry.entries_for_auction(auction)
    _emit([{"nullifier": e.nullifier, "auction": e.auction, "timestamp": e.timestamp} for e in entries])


# =============================================================================
# Scoring Commands
# =============================================================================


@cli.command("hhi")
@click.argument("amounts", nargs=-1, type=UINT256)
def hhi_cmd(amounts):
    """Compute HHI and MPS of bid amounts"""
    hhi = compute_hhi(list(amounts))
    _emit({"hhi": hhi, "mps": market_participation_score(hhi), "bid_count": len(amounts)})


@cli.command("score")
@click.argument("auction")
@click.option("--pattern", required=True,
              type=click.Choice([p.name for p in MarketPattern], case_sensitive=False),
              help="Observed bidding pattern")
@click.option("--revealed-only", is_flag=True, help="Only count revealed bids")
@click.option("--rate", default=None, type=UINT256, help="Current rate to adjust")
@click.pass_context
@engine_errors
def score_cmd(ctx, auction, pattern, revealed_only, rate):
    """Score an auction's concentration and rate improvement"""
    report = _book(ctx).concentration(auction, revealed_only)
    improvement = report.improvement(MarketPattern[pattern.upper()])
    data = report.to_dict()
    data["pattern"] = pattern.upper()
    data["improvement"] = improvement
    if rate is not None:
        data["new_rate"] = apply_improvement(rate, improvement)
    _emit(data)


# =============================================================================
# Settlement Commands
# =============================================================================


@cli.command("settle")
@click.argument("auction")
@click.option("--status", default="ENDED",
              type=click.Choice([s.name for s in AuctionStatus], case_sensitive=False),
              help="Auction status reported by chain state")
@click.option("--clearing-price", default=0, type=UINT256, help="Clearing price from chain state")
@click.option("--currency-raised", default=0, type=UINT256, help="Currency raised from chain state")
@click.pass_context
@engine_errors
def settle_cmd(ctx, auction, status, clearing_price, currency_raised):
    """Rank revealed bids of an ended auction into winners"""
    snapshot = AuctionSnapshot(
        status=AuctionStatus[status.upper()],
        clearing_price=clearing_price,
        currency_raised=currency_raised,
    )
    _emit(_book(ctx).settle(auction, snapshot).to_dict())


# =============================================================================
# Maintenance Commands
# =============================================================================


@cli.command("export")
@click.argument("nullifier")
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False), help="Write to file")
@click.pass_context
@engine_errors
def export_cmd(ctx, nullifier, output):
    """Export a recorded bid (salt included) as a JSON backup"""
    text = _book(ctx).export(nullifier)
    if output:
        Path(output).write_text(text, encoding="utf-8")
        click.echo(f"Backup written to {output}", err=True)
    else:
        click.echo(text)


@cli.command("import")
@click.argument("backup", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
@engine_errors
def import_cmd(ctx, backup):
    """Import a JSON backup and record its bid"""
    bid = _book(ctx).import_backup(Path(backup).read_text(encoding="utf-8"))
    _emit(bid.to_dict())


@cli.command("clear")
@click.argument("auction")
@click.confirmation_option(prompt="Remove all nullifiers and bids of this auction?")
@click.pass_context
@engine_errors
def clear_cmd(ctx, auction):
    """Tear down an auction (nullifiers and bids)"""
    cleared, deleted = _book(ctx).teardown(auction)
    _emit({"auction": auction.lower(), "nullifiers_cleared": cleared, "bids_deleted": deleted})


if __name__ == "__main__":
    cli()

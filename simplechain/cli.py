# simplechain/cli.py

import asyncio
import json
import sys
from typing import Any, Awaitable, Callable

import click
from dotenv import load_dotenv

# Load .env before Config reads the environment.
load_dotenv()

from simplechain import setup_logging
from simplechain.config import Config
from simplechain.exceptions import BlockNotFoundError, LedgerError
from simplechain.ledger import Ledger
from simplechain.models import Block
from simplechain.storage import create_storage


def _with_ledger(ctx: click.Context, action: Callable[[Ledger], Awaitable[Any]]) -> Any:
    """Opens the configured ledger, runs `action` against it and closes it."""
    config = ctx.obj

    async def _run():
        ledger = await Ledger.open(create_storage(config), genesis_body=config["GENESIS_BODY"])
        try:
            return await action(ledger)
        finally:
            await ledger.close()

    try:
        return asyncio.run(_run())
    except BlockNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except LedgerError as e:
        click.echo(f"Ledger error: {e}", err=True)
        sys.exit(2)


def _echo_block(block: Block) -> None:
    click.echo(json.dumps(block.model_dump(), indent=2))


@click.group()
@click.option("--storage", type=click.Choice(["memory", "file", "redis"]), default=None,
              help="Storage backend (defaults to LEDGER_STORAGE).")
@click.option("--path", "file_path", default=None, help="Ledger file for the file backend.")
@click.option("--redis-url", default=None, help="Redis URL for the redis backend.")
@click.option("--log-level", default=None, help="Logging level (defaults to LOG_LEVEL).")
@click.pass_context
def cli(ctx, storage, file_path, redis_url, log_level):
    """Append-only hash-chained ledger."""
    config = Config.as_dict()
    if storage:
        config["LEDGER_STORAGE"] = storage
    if file_path:
        config["LEDGER_FILE_PATH"] = file_path
    if redis_url:
        config["REDIS_URL"] = redis_url
    # stdout carries command output; logs go to stderr.
    setup_logging(log_level or config["LOG_LEVEL"], config.get("LOG_FILE"), stream=sys.stderr)
    ctx.obj = config


@cli.command()
@click.argument("body")
@click.pass_context
def append(ctx, body):
    """Append a block carrying BODY."""
    block = _with_ledger(ctx, lambda ledger: ledger.append(Block(body=body)))
    _echo_block(block)


@cli.command()
@click.pass_context
def height(ctx):
    """Print the current tip height."""
    click.echo(_with_ledger(ctx, lambda ledger: ledger.get_block_height()))


@cli.command()
@click.argument("block_height", type=int)
@click.pass_context
def show(ctx, block_height):
    """Print the block stored at BLOCK_HEIGHT."""
    _echo_block(_with_ledger(ctx, lambda ledger: ledger.get_block(block_height)))


@cli.command()
@click.pass_context
def validate(ctx):
    """Check every block's hash and every link."""
    result = _with_ledger(ctx, lambda ledger: ledger.validate_chain())
    if result.is_valid:
        click.echo("Chain is valid.")
        return
    click.echo(f"Chain is INVALID. Offending blocks: {result.errors}", err=True)
    sys.exit(1)


@cli.command()
@click.pass_context
def dump(ctx):
    """Print every stored block record, including orphans above the tip."""
    blocks = _with_ledger(ctx, lambda ledger: ledger.dump_chain())
    click.echo(json.dumps([block.model_dump() for block in blocks], indent=2))


@cli.command()
@click.option("--purge", is_flag=True, help="Also delete the stored block records.")
@click.confirmation_option(prompt="This empties the ledger. Continue?")
@click.pass_context
def reset(ctx, purge):
    """Empty the ledger."""
    _with_ledger(ctx, lambda ledger: ledger.reset(purge=purge))
    click.echo("Ledger reset.")


@cli.command()
@click.option("--host", default=None)
@click.option("--port", type=int, default=None)
@click.pass_context
def serve(ctx, host, port):
    """Run the HTTP API."""
    from simplechain.api import create_ledger_app

    config = ctx.obj
    app = create_ledger_app(config)
    app.run(host=host or config["API_HOST"], port=port or config["API_PORT"], debug=False)


if __name__ == "__main__":
    cli()

import typer
from rich.table import Table

from app.redis import init_redis
from app.redis.cache import delete_pattern, get_cache_stats
from app.redis.warming import warm_cache

from . import utils

app = typer.Typer(no_args_is_help=True)


def _connect():
    if not init_redis():
        utils.error("Redis is not available. Check REDIS_ENABLED and the connection settings.")


@app.command(name="stats")
def stats():
    """Shows key count, memory usage and hit ratio"""
    _connect()
    cache_stats = get_cache_stats()
    utils.print_table(
        table=Table("Metric", "Value"),
        rows=[(name, str(value)) for name, value in cache_stats.items()],
    )


@app.command(name="clear")
def clear(
    pattern: str = typer.Argument("*", help="Glob pattern of the keys to delete"),
    yes_to_all: bool = typer.Option(False, *utils.FLAGS["yes_to_all"], help="Skips confirmations"),
):
    """
    Deletes cached keys matching a pattern

    Confirmations can be skipped using `--yes/-y` option.
    """
    _connect()
    if not yes_to_all and not typer.confirm(f'Delete every key matching "{pattern}"?', default=False):
        utils.error("Operation aborted!")
    deleted = delete_pattern(pattern)
    utils.success(f"{deleted} keys deleted.")


@app.command(name="warm")
def warm():
    """Recomputes the hot read caches"""
    _connect()
    outcomes = warm_cache()
    utils.print_table(
        table=Table("Key", "Stored"),
        rows=[(key, "yes" if stored else "no") for key, stored in outcomes.items()],
    )
    warmed = sum(1 for stored in outcomes.values() if stored)
    utils.success(f"{warmed}/{len(outcomes)} entries cached.")

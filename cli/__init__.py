import typer

from app.db import init_db

from . import cache, user

app = typer.Typer(no_args_is_help=True, help="Pharmzone command line interface")
app.add_typer(user.app, name="user", help="Manage member accounts")
app.add_typer(cache.app, name="cache", help="Inspect and refresh the Redis cache")


@app.callback()
def prepare_database():
    """Creates missing tables before any command runs."""
    init_db()


def main():
    app()

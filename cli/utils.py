from datetime import datetime
from typing import Iterable, Optional

import typer
from rich.console import Console
from rich.table import Table

PASSWORD_ENVIRON_NAME = "PHARMZONE_ADMIN_PASSWORD"

FLAGS = {
    "email": ("--email", "-e"),
    "first_name": ("--first-name",),
    "last_name": ("--last-name",),
    "role": ("--role", "-r"),
    "status": ("--status", "-s"),
    "search": ("--search",),
    "page": ("--page", "-p"),
    "limit": ("--limit", "-l"),
    "pattern": ("--pattern",),
    "yes_to_all": ("--yes", "-y"),
}

console = Console()


def success(text: str, auto_exit: bool = True):
    console.print(text, style="green")
    if auto_exit:
        raise typer.Exit(0)


def error(text: str, auto_exit: bool = True):
    console.print(text, style="red")
    if auto_exit:
        raise typer.Exit(1)


def print_table(table: Table, rows: Iterable[Iterable[str]]):
    for row in rows:
        table.add_row(*row)
    console.print(table)


def readable_datetime(value: Optional[datetime], include_time: bool = True) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M:%S" if include_time else "%Y-%m-%d")

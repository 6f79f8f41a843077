from typing import Optional

import typer
from rich.table import Table
from sqlalchemy.exc import IntegrityError

from app.db import GetDB, crud
from app.models.user import UserCreate, UserRole, UserStatus
from app.redis.invalidation import invalidate_user_related_data

from . import utils

app = typer.Typer(no_args_is_help=True)


def parse_status(value: Optional[str]) -> Optional[UserStatus]:
    if not value:
        return None
    try:
        return UserStatus(value.lower())
    except ValueError as exc:
        choices = ", ".join(status.value for status in UserStatus)
        raise typer.BadParameter(f"Status must be one of: {choices}.") from exc


@app.command(name="create-superadmin")
def create_superadmin(
    email: str = typer.Option(..., *utils.FLAGS["email"], show_default=False, prompt=True),
    first_name: str = typer.Option("Super", *utils.FLAGS["first_name"], prompt=True),
    last_name: str = typer.Option("Admin", *utils.FLAGS["last_name"], prompt=True),
    password: str = typer.Option(..., prompt=True, confirmation_prompt=True,
                                 hide_input=True, hidden=True, envvar=utils.PASSWORD_ENVIRON_NAME),
):
    """
    Creates an approved superadmin account

    Password can also be set using the `PHARMZONE_ADMIN_PASSWORD` environment variable for non-interactive usages.
    """
    try:
        payload = UserCreate(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password=password,
            role=UserRole.superadmin,
        )
    except ValueError as exc:
        utils.error(str(exc))

    with GetDB() as db:
        try:
            crud.create_user(db, payload, approved=True)
        except IntegrityError:
            db.rollback()
            utils.error(f'User "{payload.email}" already exists!')
    utils.success(f'Superadmin "{payload.email}" created successfully.')


@app.command(name="list")
def list_users(
    page: int = typer.Option(1, *utils.FLAGS["page"]),
    limit: int = typer.Option(20, *utils.FLAGS["limit"]),
    status: Optional[str] = typer.Option(None, *utils.FLAGS["status"], help="Filter by status"),
    search: Optional[str] = typer.Option(None, *utils.FLAGS["search"], help="Search by name or email"),
):
    """Displays a table of users"""
    with GetDB() as db:
        users, total = crud.get_users(db, page=page, limit=limit, status=parse_status(status), search=search)
        rows = [
            (
                str(user.id),
                user.email,
                user.full_name,
                user.role.value,
                user.status.value,
                utils.readable_datetime(user.created_at),
            )
            for user in users
        ]

    utils.print_table(
        table=Table("ID", "Email", "Name", "Role", "Status", "Created at", title=f"{total} users"),
        rows=rows,
    )


@app.command(name="approve")
def approve_user(
    email: str = typer.Argument(..., help="Email of the pending member"),
    yes_to_all: bool = typer.Option(False, *utils.FLAGS["yes_to_all"], help="Skips confirmations"),
):
    """
    Approves a pending registration

    Confirmations can be skipped using `--yes/-y` option.
    """
    with GetDB() as db:
        dbuser = crud.get_user_by_email(db, email)
        if not dbuser:
            utils.error(f'There\'s no user with email "{email}"!')
        if dbuser.status == UserStatus.active:
            utils.success(f'"{dbuser.email}" is already active.')

        if not yes_to_all and not typer.confirm(f'Approve "{dbuser.email}"?', default=True):
            utils.error("Operation aborted!")

        crud.approve_user(db, dbuser)
        invalidate_user_related_data(dbuser.id)
        utils.success(f'"{dbuser.email}" approved successfully.')

# Overview: Flask CLI command groups for database bootstrap, data entry and reports.

# backend/cobros/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: python -m flask --app cobros <group> <command> [options]
#
# Database:
# - python -m flask --app cobros db-admin init
#   Create any missing tables in the configured database file (idempotent).
# - python -m flask --app cobros db-admin reset --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Collectors:
# - python -m flask --app cobros users create --nombre Ana --apellido Perez --login ana --password secreto
#   Register a collector (prompts if options are omitted).
# - python -m flask --app cobros users list
#
# Merchants and stalls:
# - python -m flask --app cobros merchants create "Ana Lopez"
# - python -m flask --app cobros merchants list [--search ana]
# - python -m flask --app cobros stalls create A1 --merchant-id 1
# - python -m flask --app cobros stalls list [--search a1]
#
# Payments:
# - python -m flask --app cobros payments record --stall-id 1 --amount 10 --received 15 [--date 2024-03-01] [--login ana]
# - python -m flask --app cobros payments list --login ana [--search a1] [--from 2024-03-01] [--to 2024-03-31]
#
# Reports:
# - python -m flask --app cobros reports summary [--today 2024-03-15]

import json
from datetime import date

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db, live_queries
from .services import analytics_service, merchant_service, payment_service, stall_service, user_service
from .validation import (
    ConflictError,
    ValidationError,
    require_text,
    validate_date,
    validate_optional_date,
    validate_payment,
)


def _fail(message: str) -> None:
    current_app.logger.warning("CLI command failed: %s", message)
    click.echo(f"FAIL {message}")
    raise click.exceptions.Exit(1)


def _resolve_user_id(login: str | None) -> int | None:
    if not login:
        return None
    user = user_service.get_user_by_login(login)
    if user is None:
        _fail(f"User '{login}' not found")
    return user.id_usuario


@click.group('db-admin')
def db_group():
    """Database bootstrap and repair commands."""


@db_group.command('init')
@with_appcontext
def init_db():
    """Create missing tables. Existing data is untouched."""
    db.create_all()
    click.echo(f"PASS Database ready: {current_app.config['SQLALCHEMY_DATABASE_URI']}")


@db_group.command('reset')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate every table."""
    if not yes:
        _fail("Refusing to reset without --yes")
    db.session.remove()
    db.drop_all()
    db.create_all()
    # DDL bypasses the session events; every table is now empty
    live_queries.mark_changed(*db.metadata.tables)
    live_queries.dispatch()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """Collector account commands."""


@users_group.command('create')
@click.option('--nombre', prompt=True)
@click.option('--apellido', prompt=True)
@click.option('--login', 'usuario_login', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_user_cli(nombre, apellido, usuario_login, password):
    try:
        user = user_service.register_user(nombre, apellido, usuario_login, password)
    except (ValidationError, ConflictError) as e:
        _fail(str(e))
    click.echo(f"PASS Created user: {user.usuario_login} (ID: {user.id_usuario})")


@users_group.command('list')
@with_appcontext
def list_users_cli():
    users = user_service.get_all_users()
    if not users:
        click.echo("No users registered.")
        return
    for user in users:
        click.echo(f"{user.id_usuario:>4}  {user.usuario_login:<20} {user.nombre} {user.apellido}")


@click.group('merchants')
def merchants_group():
    """Merchant commands."""


@merchants_group.command('create')
@click.argument('nombre')
@with_appcontext
def create_merchant_cli(nombre):
    try:
        nombre = require_text(nombre, "nombre_comerciante")
    except ValidationError as e:
        _fail(str(e))
    merchant = merchant_service.create_merchant(nombre)
    click.echo(f"PASS Created merchant: {merchant.nombre_comerciante} (ID: {merchant.id_comerciante})")


@merchants_group.command('list')
@click.option('--search', default=None)
@with_appcontext
def list_merchants_cli(search):
    query = merchant_service.search_merchants(search) if search else merchant_service.get_all_merchants()
    for merchant in query.all():
        click.echo(f"{merchant.id_comerciante:>4}  {merchant.nombre_comerciante}")


@click.group('stalls')
def stalls_group():
    """Stall commands."""


@stalls_group.command('create')
@click.argument('numero')
@click.option('--merchant-id', type=int, required=True)
@with_appcontext
def create_stall_cli(numero, merchant_id):
    try:
        numero = require_text(numero, "numero_puesto")
    except ValidationError as e:
        _fail(str(e))
    if merchant_service.get_merchant_by_id(merchant_id) is None:
        _fail(f"Merchant {merchant_id} not found")
    try:
        stall = stall_service.create_stall(numero, merchant_id)
    except ConflictError as e:
        _fail(str(e))
    click.echo(f"PASS Created stall: {stall.numero_puesto} (ID: {stall.id_puesto})")


@stalls_group.command('list')
@click.option('--search', default="")
@with_appcontext
def list_stalls_cli(search):
    for row in stall_service.search_stalls(search).all():
        owner = row.merchant_name or "-"
        click.echo(f"{row.stall.id_puesto:>4}  {row.stall.numero_puesto:<10} {owner}")


@click.group('payments')
def payments_group():
    """Payment commands."""


@payments_group.command('record')
@click.option('--stall-id', type=int, required=True)
@click.option('--amount', required=True)
@click.option('--received', required=True)
@click.option('--date', 'fecha', default=None, help='YYYY-MM-DD, defaults to today')
@click.option('--login', default=None, help='Collector login to attribute the payment to')
@click.option('--lat', type=float, default=None)
@click.option('--lon', type=float, default=None)
@with_appcontext
def record_payment_cli(stall_id, amount, received, fecha, login, lat, lon):
    try:
        values = validate_payment(
            monto_cobrado=amount,
            dinero_recibido=received,
            fecha_cobro=fecha or date.today(),
            latitud=lat,
            longitud=lon,
        )
    except ValidationError as e:
        _fail(str(e))
    if stall_service.get_stall_by_id(stall_id) is None:
        _fail(f"Stall {stall_id} not found")

    payment = payment_service.create_payment(
        id_puesto=stall_id,
        id_usuario=_resolve_user_id(login),
        **values,
    )
    click.echo(f"PASS Recorded payment {payment.id_cobro}: charged {payment.monto_cobrado}, change {payment.vuelto}")


@payments_group.command('list')
@click.option('--login', required=True)
@click.option('--search', default="")
@click.option('--from', 'date_from', default=None)
@click.option('--to', 'date_to', default=None)
@with_appcontext
def list_payments_cli(login, search, date_from, date_to):
    try:
        date_from = validate_optional_date(date_from, "from")
        date_to = validate_optional_date(date_to, "to")
    except ValidationError as e:
        _fail(str(e))
    user_id = _resolve_user_id(login)
    for detail in payment_service.search_payments(user_id, search, date_from, date_to).all():
        owner = detail.merchant.nombre_comerciante if detail.merchant is not None else "-"
        click.echo(
            f"{detail.payment.id_cobro:>4}  {detail.payment.fecha_cobro}  "
            f"{detail.stall.numero_puesto:<10} {owner:<20} {detail.payment.monto_cobrado}"
        )


@click.group('reports')
def reports_group():
    """Reporting commands."""


@reports_group.command('summary')
@click.option('--today', default=None, help='Pin the report date (YYYY-MM-DD)')
@with_appcontext
def summary_cli(today):
    try:
        day = date.fromisoformat(validate_date(today, "today")) if today else None
    except ValidationError as e:
        _fail(str(e))
    details = payment_service.get_all_payment_details().all()
    summary = analytics_service.build_summary(
        details,
        stall_count=len(stall_service.get_all_stalls().all()),
        merchant_count=len(merchant_service.get_all_merchants().all()),
        today=day,
    )
    click.echo(json.dumps(summary.to_dict(), indent=2))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(db_group)
    app.cli.add_command(users_group)
    app.cli.add_command(merchants_group)
    app.cli.add_command(stalls_group)
    app.cli.add_command(payments_group)
    app.cli.add_command(reports_group)

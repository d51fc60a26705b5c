"""Flask CLI commands for the daily billing jobs and tenant bootstrap.

Run from cron, e.g. ``0 8 * * * flask --app wsgi billing sweep``.
"""
from datetime import datetime

import click
from flask.cli import AppGroup
from flask_jwt_extended import create_access_token

from .clock import FixedClock, get_clock
from .extensions import db
from .models import Tenant
from .services.reminders import send_due_reminders
from .services.sweep import run_contract_sweep, run_overdue_sweep

billing_cli = AppGroup("billing", help="Collections jobs.")
tenant_cli = AppGroup("tenant", help="Tenant administration.")


def _clock_for(as_of):
    if not as_of:
        return get_clock()
    return FixedClock(datetime.strptime(as_of, "%Y-%m-%d").date())


@billing_cli.command("sweep")
@click.option("--as-of", default=None, help="Run as if today were YYYY-MM-DD.")
@click.option("--tenant", "tenant_id", type=int, default=None, help="Only this tenant's invoices.")
def sweep_command(as_of, tenant_id):
    """Mark past-due invoices overdue and charge late fees."""
    report = run_overdue_sweep(clock=_clock_for(as_of), tenant_id=tenant_id)
    click.echo(
        f"as_of={report.as_of} examined={report.examined} overdue={len(report.marked_overdue)} "
        f"late_fees={len(report.late_fees)} errors={len(report.errors)}"
    )
    for failure in report.errors:
        click.echo(f"  invoice {failure.invoice_id}: {failure.error}", err=True)
    if report.errors:
        raise SystemExit(1)


@billing_cli.command("contracts")
@click.option("--as-of", default=None, help="Run as if today were YYYY-MM-DD.")
def contracts_command(as_of):
    """Move ending contracts to expiring/expired."""
    result = run_contract_sweep(clock=_clock_for(as_of))
    click.echo(" ".join(f"{key}={len(ids)}" for key, ids in result.items()))


@billing_cli.command("remind")
@click.option("--as-of", default=None, help="Run as if today were YYYY-MM-DD.")
def remind_command(as_of):
    """Send due-soon and due-yesterday reminder e-mails."""
    sent = send_due_reminders(clock=_clock_for(as_of))
    click.echo(f"upcoming={len(sent['upcoming'])} overdue={len(sent['overdue'])}")


@tenant_cli.command("create")
@click.argument("name")
@click.option("--plan", default="trial")
def create_tenant_command(name, plan):
    tenant = Tenant(name=name, plan=plan)
    db.session.add(tenant)
    db.session.commit()
    click.echo(f"Tenant created: {tenant.id} {tenant.name}")


@tenant_cli.command("token")
@click.argument("tenant_id", type=int)
@click.option("--user", "user", default="admin", help="Identity recorded as the actor.")
def token_command(tenant_id, user):
    """Print an access token scoped to TENANT_ID."""
    if db.session.get(Tenant, tenant_id) is None:
        raise click.ClickException(f"Tenant {tenant_id} not found")
    click.echo(create_access_token(identity=user, additional_claims={"tenant_id": tenant_id}))

# storefront/cli.py
import click
from flask.cli import with_appcontext

from .services import coupon_validator, fetch_order
from .services.storage import purge_expired
from .utils.errors import StorefrontError

@click.command("check-order")
@click.argument("order_id", type=int)
@click.option("--key", default=None, help="order key to verify")
@with_appcontext
def check_order(order_id, key):
    try:
        o = fetch_order(order_id)
    except StorefrontError as e:
        raise click.ClickException(f"{e.message} ({e.detail})" if e.detail else e.message)
    if key and key != o.get("order_key"):
        raise click.ClickException("order key does not match")
    click.echo(f"Order {o.get('id')}: {o.get('status')} {o.get('total')} {o.get('currency') or 'EUR'}")

@click.command("validate-coupon")
@click.argument("code")
@click.argument("total")
@with_appcontext
def validate_coupon(code, total):
    try:
        c = coupon_validator().validate(code, total)
    except StorefrontError as e:
        raise click.ClickException(e.message)
    click.echo(f"Coupon {c.code} valid: {c.discount_type.value} {c.amount}")

@click.command("purge-transient")
@with_appcontext
def purge_transient():
    n = purge_expired()
    click.echo(f"Purged {n} expired storage entries")

def register_cli(app):
    app.cli.add_command(check_order)
    app.cli.add_command(validate_coupon)
    app.cli.add_command(purge_transient)

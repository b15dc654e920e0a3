# Simple CLI for the Kite gateway
import json
import click

from app.containers import AppContainer
from core.logging import configure_logging, get_logger


logger = get_logger("cli", component="cli")


def _container() -> AppContainer:
    container = AppContainer()
    configure_logging(container.settings())
    return container


@click.group()
def cli():
    """Kite Gateway CLI"""
    pass


@cli.command()
def api():
    """Run the API server"""
    click.echo("Starting Kite gateway API server...")
    from api.main import run as run_api
    run_api()


@cli.command("login-url")
def login_url():
    """Print the Kite login URL"""
    url = _container().gateway().get_login_url()
    if not url:
        raise click.ClickException("Kite client not initialized. Check ZERODHA__API_KEY.")
    click.echo(url)


@cli.command()
@click.argument("request_token")
def session(request_token):
    """Exchange a request token for an access token"""
    envelope = _container().gateway().exchange_session(request_token)
    logger.info("Session exchange from CLI", success=envelope.ok)
    click.echo(json.dumps(envelope.to_dict(), indent=2))
    if not envelope.ok:
        raise SystemExit(1)


@cli.command()
def tools():
    """List the tools exposed to the agent"""
    for spec in _container().tool_registry().list_tools():
        marker = "*" if spec["requires_session"] else " "
        click.echo(f"{marker} {spec['name']:<20} {spec['description']}")


if __name__ == "__main__":
    cli()

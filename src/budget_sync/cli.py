from __future__ import annotations

import json

import click
import uvicorn

from budget_sync import __version__
from budget_sync.api.models import AuthStore
from budget_sync.config import get_safe_config_report, get_settings
from budget_sync.storage import db_path_from_settings
from budget_sync.utils.log import logger, set_log_level


@click.group(name="budget-sync", help="budget-sync server and maintenance commands")
@click.version_option(__version__, prog_name="budget-sync")
@click.option("--log-level", default=None, help="Override LOG_LEVEL for this invocation.")
def cli(log_level: str | None) -> None:
    if log_level:
        set_log_level(log_level)


@cli.command()
@click.option("--host", default=None, help="Bind address (default: HOST).")
@click.option("--port", type=int, default=None, help="Bind port (default: PORT).")
@click.option("--reload", is_flag=True, default=False, help="Auto-reload on code changes.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Run the API server under uvicorn."""
    s = get_settings()
    uvicorn.run(
        "budget_sync.server:app",
        host=str(host or s.host),
        port=int(port or s.port),
        reload=bool(reload),
    )


@cli.command("show-config")
def show_config() -> None:
    """Print the effective configuration. Secrets show as SET/UNSET only."""
    click.echo(json.dumps(get_safe_config_report(), indent=2, sort_keys=True))


@cli.command("purge-expired")
def purge_expired() -> None:
    """Delete refresh tokens that are past their expiry."""
    s = get_settings()
    store = AuthStore(db_path_from_settings(), timeout_s=float(s.db_timeout_s))
    n = store.purge_expired_refresh_tokens()
    logger.info("refresh_tokens_purged", count=n)
    click.echo(f"purged {n} expired refresh token(s)")


def main() -> None:
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()

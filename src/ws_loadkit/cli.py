"""
Command line interface for ws-loadkit.

    ws-loadkit split messages.txt        # one decoded object per line
    ws-loadkit token --sub user1         # secret from JWT_SECRET
    ws-loadkit verify <token>
"""

import json
import sys
from typing import Optional, Tuple

import click

from . import __version__
from .auth.token import TokenAuth
from .streaming.splitter import StreamSplitter
from .utils.config import load_config, LoadTestConfig
from .utils.errors import LoadKitError, error_context
from .utils.logging import setup_logging

# Exit status for configuration, encoding and signing failures
EXIT_USAGE_ERROR = 2

# Claims set from --sub/--exp or by TokenAuth itself
RESERVED_CLAIMS = frozenset(("sub", "exp", "user_id", "expires_at"))


def _fail(error: LoadKitError) -> None:
    click.echo(f"Error: {error.message}", err=True)
    for suggestion in error.get_suggestions():
        click.echo(f"  - {suggestion}", err=True)
    sys.exit(EXIT_USAGE_ERROR)


def _token_auth(config: LoadTestConfig, secret: Optional[str]) -> TokenAuth:
    return TokenAuth(secret or config.jwt_secret, config.token_expiry)


@click.group()
@click.version_option(__version__, prog_name="ws-loadkit")
@click.option('--config', 'config_paths', multiple=True,
              type=click.Path(dir_okay=False), help='Configuration file (JSON, YAML or TOML)')
@click.option('--log-level', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Override the configured log level')
@click.pass_context
def main(ctx: click.Context, config_paths: Tuple[str, ...], log_level: Optional[str]):
    """Utilities for the WebSocket broadcast load test."""
    # Console-only logging until the configuration is known
    setup_logging(log_level=(log_level or 'WARNING').upper(), enable_json=False)

    try:
        with error_context("cli", "load_config", paths=list(config_paths)):
            config = load_config(config_paths=list(config_paths) or None)
    except LoadKitError as e:
        _fail(e)

    setup_logging(
        log_level=(log_level or config.logging.level).upper(),
        log_dir=config.logging.directory,
        enable_json=config.logging.format == "json",
        enable_sentry=config.logging.enable_sentry,
        sentry_dsn=config.logging.sentry_dsn,
    )

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@main.command()
@click.argument('source', type=click.File('r'), default='-')
@click.option('--strict', is_flag=True, help='Exit with status 1 if any fragment was dropped')
@click.option('--stats', is_flag=True, help='Print a summary to stderr')
def split(source, strict: bool, stats: bool):
    """Split concatenated JSON objects from SOURCE (default stdin)."""
    result = StreamSplitter().feed(source.read())

    for obj in result.objects:
        click.echo(json.dumps(obj, separators=(',', ':'), ensure_ascii=False))

    if stats:
        click.echo(json.dumps(result.to_dict()), err=True)

    if strict and not result.ok:
        sys.exit(1)


@main.command()
@click.option('--sub', required=True, help='Subject claim, e.g. user1')
@click.option('--exp', type=int, default=None, help='Expiry, seconds since the epoch')
@click.option('--claim', 'extra_claims', multiple=True, metavar='KEY=VALUE',
              help='Additional string claim')
@click.option('--secret', default=None, help='Signing secret (default: JWT_SECRET)')
@click.pass_context
def token(ctx: click.Context, sub: str, exp: Optional[int], extra_claims: Tuple[str, ...],
          secret: Optional[str]):
    """Print a signed connection token."""
    claims = {}
    for item in extra_claims:
        key, sep, value = item.partition('=')
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint='--claim')
        if key in RESERVED_CLAIMS:
            raise click.BadParameter(f"{key!r} cannot be set with --claim", param_hint='--claim')
        claims[key] = value

    try:
        with error_context("cli", "token", sub=sub):
            auth = _token_auth(ctx.obj["config"], secret)
            token_string = auth.issue_token(sub, expires_at=exp, **claims)
    except LoadKitError as e:
        _fail(e)

    click.echo(token_string)


@main.command()
@click.argument('token_string', metavar='TOKEN')
@click.option('--secret', default=None, help='Signing secret (default: JWT_SECRET)')
@click.pass_context
def verify(ctx: click.Context, token_string: str, secret: Optional[str]):
    """Verify TOKEN and print its claims."""
    try:
        with error_context("cli", "verify"):
            claims = _token_auth(ctx.obj["config"], secret).verify_token(token_string)
    except LoadKitError as e:
        _fail(e)

    if claims is None:
        click.echo("Error: invalid token", err=True)
        sys.exit(1)

    click.echo(json.dumps(claims, ensure_ascii=False))


if __name__ == "__main__":
    main()

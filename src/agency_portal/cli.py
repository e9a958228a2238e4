"""Command-line interface for the agency portal.

    agency-portal web  – run the API server (FastAPI + uvicorn)

Running ``agency-portal`` without a subcommand defaults to ``web``.
"""

import click

from agency_portal import __version__


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="agency-portal")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Agency Portal."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(web)


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Host to bind to.")
@click.option("--port", default=8000, show_default=True, help="Port to listen on.")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose logging.",
)
@click.option(
    "--reload",
    is_flag=True,
    default=False,
    help="Auto-reload on code changes (development only).",
)
@click.option(
    "--proxy-headers",
    is_flag=True,
    default=False,
    help="Trust X-Forwarded-Proto/Host headers (enable behind a reverse proxy).",
)
def web(host: str, port: int, verbose: bool, reload: bool, proxy_headers: bool) -> None:
    """Run the API server (default)."""
    import logging
    from pathlib import Path

    import uvicorn

    from agency_portal.app import _setup_logging, app

    log_level = "info" if verbose else "warning"
    _setup_logging(level=logging.DEBUG if verbose else logging.WARNING)

    url = f"http://{host}:{port}"
    click.echo(f"✦ agency-portal running at {click.style(url, fg='cyan', bold=True)}")
    if reload:
        click.echo(f"  {click.style('⟳ Auto-reload enabled', fg='yellow')}")
    click.echo("  Press Ctrl+C to stop.\n")

    proxy_kwargs: dict[str, object] = {}
    if proxy_headers:
        proxy_kwargs["proxy_headers"] = True
        proxy_kwargs["forwarded_allow_ips"] = "*"

    if reload:
        uvicorn.run(
            "agency_portal.app:app",
            host=host,
            port=port,
            log_level=log_level,
            reload=True,
            reload_dirs=[str(Path(__file__).resolve().parent)],
            **proxy_kwargs,  # type: ignore[arg-type]
        )
    else:
        uvicorn.run(app, host=host, port=port, log_level=log_level, **proxy_kwargs)  # type: ignore[arg-type]

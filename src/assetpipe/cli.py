from __future__ import annotations

from dataclasses import replace
from typing import Optional

import typer

from .config import AssetClass, Mode, PipelineConfig, resolve_config
from .core import describe
from .errors import AssetPipeError, ConfigError, ServerFailure, WatcherSubscriptionFailure
from .logging import get_logger, log_to_file
from .pipeline import AssetPipeline
from .server import DevServer
from .tasks import GraphBuilder


app = typer.Typer(add_completion=False, help="Static asset build orchestrator")
log = get_logger("assetpipe.cli")

_CONFIG_HELP = "Path to YAML config (default: ./assetpipe.yaml if present, else built-in layout)"
_LOG_FILE_HELP = "Also write the log to this file (rotated at 1 MB)"


def _load(config: Optional[str], project_dir: str = ".") -> PipelineConfig:
    try:
        cfg = resolve_config(config, project_dir)
        log.debug("Project root: %s", cfg.root)
        return cfg
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=2)


@app.command("list")
def list_assets(
    config: Optional[str] = typer.Option(None, help=_CONFIG_HELP),
):
    """List asset classes, their paths and the watch bindings."""
    cfg = _load(config)
    builder = GraphBuilder(cfg)
    typer.echo(f"Project root: {cfg.root}")
    for ac in AssetClass:
        spec = cfg.spec(ac)
        typer.echo(f"- {ac.value}")
        typer.echo(f"    sources: {', '.join(spec.sources)}")
        typer.echo(f"    dev:     {spec.dev_destination}")
        typer.echo(f"    release: {spec.release_destination}")
    typer.echo("Watch bindings:")
    for binding in builder.bindings():
        typer.echo(f"- {binding.name}: {describe(binding.graph)}")


@app.command()
def check(
    config: Optional[str] = typer.Option(None, help=_CONFIG_HELP),
):
    """Validate the configuration and exit."""
    cfg = _load(config)
    typer.echo(f"Configuration OK ({len(cfg.paths)} asset classes)")


@app.command("run-dev")
def run_dev(
    config: Optional[str] = typer.Option(None, help=_CONFIG_HELP),
    host: Optional[str] = typer.Option(None, help="Dev server host"),
    port: Optional[int] = typer.Option(None, help="Dev server port"),
    serve: bool = typer.Option(True, help="Start the dev server"),
    log_file: Optional[str] = typer.Option(None, help=_LOG_FILE_HELP),
):
    """Build into the dev tree, serve it and rebuild on change."""
    if log_file:
        log_to_file(log_file)
    cfg = _load(config)
    settings = cfg.server
    if host is not None:
        settings = replace(settings, host=host)
    if port is not None:
        settings = replace(settings, port=port)
    server = DevServer(cfg.output_root(Mode.DEV), settings) if serve else None
    pipe = AssetPipeline(cfg, server=server)
    try:
        code = pipe.run_dev()
    except WatcherSubscriptionFailure as e:
        typer.echo(f"Cannot watch {e.path}: {e}", err=True)
        raise typer.Exit(code=1)
    except ServerFailure as e:
        typer.echo(f"Cannot start the dev server: {e}", err=True)
        raise typer.Exit(code=1)
    except AssetPipeError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    if code != 0:
        typer.echo("Initial build failed; see log for details.", err=True)
    raise typer.Exit(code=code)


@app.command("run-release")
def run_release(
    config: Optional[str] = typer.Option(None, help=_CONFIG_HELP),
    log_file: Optional[str] = typer.Option(None, help=_LOG_FILE_HELP),
):
    """Build the release tree once, then purge and minify styles."""
    if log_file:
        log_to_file(log_file)
    cfg = _load(config)
    pipe = AssetPipeline(cfg)
    failure = pipe.build_release()
    if failure is not None:
        typer.echo(f"Release failed at stage {failure.first.unit}: {failure.first.error}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Release written to {cfg.output_root(Mode.RELEASE)}")


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()

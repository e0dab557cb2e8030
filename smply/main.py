# Copyright 2026 Pramod Kumar Voola
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# -----------------------------------------------------------------------------
# SMPLY - COMMAND LINE INTERFACE
# -----------------------------------------------------------------------------
# Responsibility: The `smply` command. Parses flags, loads configuration and
# hands off to the PublishOrchestrator.
#
# Commands:
# - smply machine-versions create: build, validate and publish a version
# - smply machines create: create a machine, optionally with its first version
# - smply build: build and validate locally, no network
#
# Output contract: results as JSON on stdout; progress and the single
# "<category>: <message>" failure line on stderr; non-zero exit on failure.
# -----------------------------------------------------------------------------

import json
import re
import signal
from collections.abc import Callable
from pathlib import Path
from typing import List, Optional, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from smply import __version__
from smply.core.config import (
    SmplyConfig,
    load_config,
    make_bundler,
    make_client,
    make_sandbox_factory,
)
from smply.core.orchestrator import PublishOrchestrator
from smply.core.source import SourceSelector
from smply.domain.errors import ConfigurationError, SmplyError
from smply.domain.models import MACHINE_NAME_PATTERN, PublishRequest
from smply.infra.api_client import StateBackedClient
from smply.infra.workspace import FileSystemError

VERSION = __version__
DEFAULT_FIRST_VERSION = "0.0.1"
EXIT_INTERRUPTED = 130

error_console = Console(stderr=True)

app = typer.Typer(
    name="smply",
    help="Command line tool for State Backed.\n\nState Backed runs statecharts as a service.",
    no_args_is_help=True,
)
machines_app = typer.Typer(help="Manage state machine definitions", no_args_is_help=True)
versions_app = typer.Typer(help="Manage machine definition versions", no_args_is_help=True)
app.add_typer(machines_app, name="machines")
app.add_typer(versions_app, name="machine-versions")

T = TypeVar("T")

JS_HELP = "Path to a single pre-built javascript file that exports the machine definition."
NODE_HELP = "Path to a Node.js entrypoint. It is built into a single, self-contained ECMAScript module."
DENO_HELP = "Path to a Deno entrypoint. It is built into a single, self-contained ECMAScript module."
SKIP_VALIDATION_HELP = "Don't validate the bundle before uploading it."


def _check_machine_name(value: str) -> str:
    if value is not None and not re.match(MACHINE_NAME_PATTERN, value):
        raise typer.BadParameter("name must use only alphanumeric characters, underscores, and dashes")
    return value


def _write_obj(obj: dict) -> None:
    typer.echo(json.dumps(obj, indent=2))


def _run(ctx: typer.Context, action: Callable[[], T]) -> T:
    """Run a command body, mapping pipeline failures to one line and an exit code."""
    try:
        return action()
    except SmplyError as e:
        if ctx.obj and ctx.obj.get("debug"):
            error_console.print_exception()
        error_console.print(f"[bold red]{escape(e.describe())}[/bold red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        error_console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED)


def _load_config(ctx: typer.Context) -> SmplyConfig:
    return load_config(ctx.obj["overrides"] if ctx.obj else None)


def _orchestrator(config: SmplyConfig, client: StateBackedClient | None) -> PublishOrchestrator:
    return PublishOrchestrator(
        client=client,
        bundler=make_bundler(config),
        sandbox_factory=make_sandbox_factory(config),
    )


def _publish_request(machine: str, version_reference: str, make_current: bool) -> PublishRequest:
    try:
        return PublishRequest(
            machine=machine, version_reference=version_reference, make_current=make_current
        )
    except ValidationError as e:
        raise ConfigurationError(f"invalid version request: {e}") from e


def _parse_index_selectors(raw: str) -> list[str]:
    """Index names from an --index-selectors JSON object."""
    try:
        selectors = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"--index-selectors is not valid JSON: {e}") from e

    if not isinstance(selectors, dict) or any(
        not name or not isinstance(path, str) for name, path in selectors.items()
    ):
        raise ConfigurationError(
            "--index-selectors must be a JSON object mapping index names to JSON path expressions"
        )
    return list(selectors)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"smply {VERSION}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    access_token: Optional[str] = typer.Option(None, "--access-token", "-t", help="Access token"),
    api_url: Optional[str] = typer.Option(
        None, "--api-url", "-u", help="API URL (default: https://api.statebacked.dev)"
    ),
    org: Optional[str] = typer.Option(
        None, "--org", "-o", help="Organization ID (needed if you have access to multiple orgs)"
    ),
    debug: bool = typer.Option(False, "--debug", help="Show tracebacks for failures"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version"
    ),
) -> None:
    """Command line tool for State Backed."""
    ctx.obj = {
        "overrides": {"access_token": access_token, "api_url": api_url, "org": org},
        "debug": debug,
    }


@versions_app.command("create")
def create_machine_version(
    ctx: typer.Context,
    machine: str = typer.Option(..., "--machine", "-m", callback=_check_machine_name, help="Machine name"),
    version_reference: str = typer.Option(
        ...,
        "--version-reference",
        "-r",
        help="Name for the version. E.g. git commit sha or semantic version identifier.",
    ),
    js: Optional[str] = typer.Option(None, "--js", "-j", help=JS_HELP),
    node: Optional[str] = typer.Option(None, "--node", "-n", help=NODE_HELP),
    deno: Optional[str] = typer.Option(None, "--deno", "-d", help=DENO_HELP),
    make_current: bool = typer.Option(False, "--make-current", "-c", help="Make this version the current version"),
    skip_validation: bool = typer.Option(False, "--skip-validation", "-s", help=SKIP_VALIDATION_HELP),
) -> None:
    """Create a new version of a machine definition. Exactly one of --js, --node or --deno is required."""

    def _action():
        request = _publish_request(machine, version_reference, make_current)
        config = _load_config(ctx)
        version = _orchestrator(config, make_client(config)).publish(
            {"js": js, "node": node, "deno": deno}, request, skip_validation=skip_validation
        )
        _write_obj(
            {
                "id": version.pretty_id,
                "machine": version.machine,
                "versionReference": version.version_reference,
                "isCurrent": version.make_current,
                "createdAt": version.created_at,
            }
        )

    _run(ctx, _action)


@machines_app.command("create")
def create_machine(
    ctx: typer.Context,
    machine: str = typer.Option(
        ...,
        "--machine",
        "-m",
        callback=_check_machine_name,
        help="Machine definition name. Must be unique within an org. [a-zA-Z0-9_-]+",
    ),
    index: Optional[List[str]] = typer.Option(
        None, "--index", "-i", help="Name of an index to create for instances of this machine. Repeatable."
    ),
    index_selectors: Optional[str] = typer.Option(
        None,
        "--index-selectors",
        help="JSON object mapping index names to JSON path expressions into the instance context. "
        "Its keys are created as the indexes; takes the place of --index.",
    ),
    version_reference: str = typer.Option(
        DEFAULT_FIRST_VERSION,
        "--version-reference",
        "-r",
        help="Name for the first version of the machine.",
    ),
    js: Optional[str] = typer.Option(None, "--js", "-j", help=JS_HELP),
    node: Optional[str] = typer.Option(None, "--node", "-n", help=NODE_HELP),
    deno: Optional[str] = typer.Option(None, "--deno", "-d", help=DENO_HELP),
    skip_validation: bool = typer.Option(False, "--skip-validation", "-s", help=SKIP_VALIDATION_HELP),
) -> None:
    """
    Create a new machine definition.

    If a source is given, the machine is created with that code as its
    current version. Otherwise add one later with 'machine-versions create'.
    """

    def _action():
        sources = {"js": js, "node": node, "deno": deno}
        has_source = any(v is not None and v.strip() for v in sources.values())
        if has_source:
            # Reject conflicting flags before the machine is created.
            SourceSelector().resolve(**sources)
        elif skip_validation:
            raise ConfigurationError("--skip-validation is only valid with --js, --node or --deno")

        request = _publish_request(machine, version_reference, True)
        config = _load_config(ctx)
        client = make_client(config)
        indexes = _parse_index_selectors(index_selectors) if index_selectors else index
        client.create_machine(machine, indexes=indexes)

        output = {"name": machine, "currentVersion": None}
        if has_source:
            version = _orchestrator(config, client).publish(
                sources, request, skip_validation=skip_validation
            )
            output["currentVersion"] = version.pretty_id
        _write_obj(output)

    _run(ctx, _action)


@app.command("build")
def build(
    ctx: typer.Context,
    js: Optional[str] = typer.Option(None, "--js", "-j", help=JS_HELP),
    node: Optional[str] = typer.Option(None, "--node", "-n", help=NODE_HELP),
    deno: Optional[str] = typer.Option(None, "--deno", "-d", help=DENO_HELP),
    output: Optional[Path] = typer.Option(
        None, "--output", "-O", help="Write the artifact here instead of stdout."
    ),
    inlined: bool = typer.Option(
        False, "--inlined", help="Emit the fully inlined variant instead of the uploadable one."
    ),
    skip_validation: bool = typer.Option(False, "--skip-validation", "-s", help=SKIP_VALIDATION_HELP),
) -> None:
    """Build (and validate) a machine definition locally without publishing it."""

    def _action():
        artifact = _orchestrator(_load_config(ctx), None).build_only(
            {"js": js, "node": node, "deno": deno}, skip_validation=skip_validation
        )
        code = artifact.validation_code if inlined else artifact.code
        if output is None:
            typer.echo(code)
            return
        try:
            output.write_bytes(code)
        except OSError as e:
            raise FileSystemError(f"could not write {output}: {e}", path=str(output)) from e
        error_console.print(f"[green]Wrote {artifact.file_name} bundle to {output}[/green]")

    _run(ctx, _action)


def _raise_interrupt(signum, frame):
    raise KeyboardInterrupt


def run() -> None:
    """Console script entry point. SIGTERM unwinds like Ctrl-C so workspaces are released."""
    signal.signal(signal.SIGTERM, _raise_interrupt)
    app()


if __name__ == "__main__":
    run()

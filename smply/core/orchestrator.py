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
# THE PUBLISH ORCHESTRATOR - BUILD & PUBLISH STATE MACHINE
# -----------------------------------------------------------------------------
# Responsibility: Drive one machine version from source flags to a published,
# finalized version on State Backed.
#
#   selecting_source -> building -> validating (optional) -> compressing
#     -> creating_version -> uploading_code -> finalizing -> done
#
# Any state may fall into `failed`. Every phase runs exactly once; nothing is
# retried and nothing is rolled back.
#
# The Gate: validation failures stop the pipeline before any network call.
#
# Point of no return: once creating_version succeeds the backend holds a
# version record. If upload or finalize fails afterwards that record stays
# behind without code; its id is reported so it can be cleaned up by hand.
#
# The workspace is acquired on entry to `building` and released on `done`,
# `failed` and Ctrl-C alike.
# -----------------------------------------------------------------------------

import time
from collections.abc import Callable, Mapping
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from smply.core.bundler import Bundler
from smply.core.compressor import compress
from smply.core.source import SourceSelector, read_raw_script
from smply.core.validator import BundleValidator
from smply.domain.models import (
    BuildArtifact,
    PublishedVersion,
    PublishRequest,
    PublishState,
    SourceSpec,
)
from smply.infra.api_client import StateBackedClient
from smply.infra.sandbox import CodeValidator, DenoSandbox
from smply.infra.workspace import scoped_workspace

console = Console(stderr=True)

SandboxFactory = Callable[[Path], CodeValidator]


class PublishOrchestrator:
    """
    Sequences source selection, build, validation, compression and the
    three-phase publish protocol.

    One orchestrator may be reused for several calls, one at a time; the
    observable state (`state`, `history`, `ticket_id`) describes the latest call.
    """

    def __init__(
        self,
        client: StateBackedClient | None = None,
        bundler: Bundler | None = None,
        sandbox_factory: SandboxFactory | None = None,
        selector: SourceSelector | None = None,
        workspace_parent: Path | None = None,
    ) -> None:
        self._client = client
        self._bundler = bundler or Bundler()
        self._sandbox_factory = sandbox_factory or (lambda workspace: DenoSandbox(workspace))
        self._selector = selector or SourceSelector()
        self._workspace_parent = workspace_parent

        self.state = PublishState.SELECTING_SOURCE
        self.history: list[PublishState] = []
        self.workspace: Path | None = None
        self.ticket_id: str | None = None
        self.point_of_no_return = False

    def _reset(self) -> None:
        self.state = PublishState.SELECTING_SOURCE
        self.history = [PublishState.SELECTING_SOURCE]
        self.workspace = None
        self.ticket_id = None
        self.point_of_no_return = False

    def _transition(self, state: PublishState) -> None:
        console.print(f"[dim][PIPELINE] {self.state.value} -> {state.value}[/dim]")
        self.state = state
        self.history.append(state)

    def _fail(self, error: BaseException) -> None:
        failed_in = self.state
        self._transition(PublishState.FAILED)

        if isinstance(error, KeyboardInterrupt):
            console.print(f"[yellow][PIPELINE] Cancelled during {failed_in.value}[/yellow]")
        else:
            console.print(f"[red][PIPELINE] Failed during {failed_in.value}: {escape(str(error))}[/red]")

        if self.point_of_no_return:
            console.print(
                f"[yellow][PIPELINE] Machine version {self.ticket_id} was created but not "
                "finalized; it has no usable code and must be removed manually[/yellow]"
            )

    def _select(self, sources: Mapping[str, str | Path | None]) -> SourceSpec:
        return self._selector.resolve(
            js=sources.get("js"), node=sources.get("node"), deno=sources.get("deno")
        )

    def _build(self, spec: SourceSpec, workspace: Path) -> BuildArtifact:
        self._transition(PublishState.BUILDING)
        if spec.dialect is None:
            console.print(f"[cyan][PIPELINE] Using pre-built script: {spec.path}[/cyan]")
            return read_raw_script(spec)
        return self._bundler.build_variants(spec.path, spec.dialect, workspace)

    def _validate(self, artifact: BuildArtifact, workspace: Path) -> None:
        self._transition(PublishState.VALIDATING)
        BundleValidator(self._sandbox_factory(workspace)).validate(artifact)

    def _prepare(self, spec: SourceSpec, skip_validation: bool, workspace: Path) -> BuildArtifact:
        artifact = self._build(spec, workspace)

        if skip_validation:
            console.print("[yellow][PIPELINE] Validation skipped (--skip-validation)[/yellow]")
        else:
            self._validate(artifact, workspace)
        return artifact

    def build_only(
        self, sources: Mapping[str, str | Path | None], skip_validation: bool = False
    ) -> BuildArtifact:
        """
        Build and (optionally) validate without contacting the backend.

        Returns:
            The artifact that `publish` would upload.
        """
        self._reset()
        try:
            spec = self._select(sources)
            with scoped_workspace(parent=self._workspace_parent) as workspace:
                self.workspace = workspace
                artifact = self._prepare(spec, skip_validation, workspace)
                self._transition(PublishState.DONE)
                return artifact
        except BaseException as e:
            self._fail(e)
            raise

    def publish(
        self,
        sources: Mapping[str, str | Path | None],
        request: PublishRequest,
        skip_validation: bool = False,
    ) -> PublishedVersion:
        """
        Build, validate, compress and publish one machine version.

        Args:
            sources: The source flags, keys `js`, `node` and `deno`.
            request: Machine, version reference and make-current flag.
            skip_validation: Go straight from building to compressing.

        Returns:
            PublishedVersion for the finalized version.

        Raises:
            ConfigurationError, BuildError, ValidationError, NetworkError,
            FileSystemError: whichever phase failed, unchanged.
        """
        if self._client is None:
            raise RuntimeError("PublishOrchestrator.publish requires an API client")

        self._reset()
        start = time.monotonic()
        try:
            spec = self._select(sources)
            with scoped_workspace(parent=self._workspace_parent) as workspace:
                self.workspace = workspace
                artifact = self._prepare(spec, skip_validation, workspace)

                self._transition(PublishState.COMPRESSING)
                gzipped = compress(artifact.code)
                console.print(
                    f"[cyan][PIPELINE] Compressed {len(artifact.code)} -> {len(gzipped)} bytes[/cyan]"
                )

                self._transition(PublishState.CREATING_VERSION)
                ticket = self._client.create_version(request.machine)
                self.ticket_id = ticket.machine_version_id
                self.point_of_no_return = True

                self._transition(PublishState.UPLOADING_CODE)
                self._client.upload_code(ticket, artifact.file_name, gzipped)

                self._transition(PublishState.FINALIZING)
                body = self._client.finalize_version(
                    request.machine,
                    ticket.machine_version_id,
                    request.version_reference,
                    request.make_current,
                )

                version = PublishedVersion(
                    machine=request.machine,
                    machine_version_id=str(body.get("id") or ticket.machine_version_id),
                    version_reference=request.version_reference,
                    make_current=request.make_current,
                    created_at=body.get("createdAt"),
                )
                self.point_of_no_return = False
                self._transition(PublishState.DONE)
        except BaseException as e:
            self._fail(e)
            raise

        console.print(
            f"[green][PIPELINE] Published {request.machine}@{request.version_reference} "
            f"({time.monotonic() - start:.1f}s)[/green]"
        )
        return version

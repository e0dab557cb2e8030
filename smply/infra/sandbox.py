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
# THE SANDBOX - ISOLATED EXECUTION OF UNTRUSTED BUNDLES
# -----------------------------------------------------------------------------
# Responsibility: Load a built artifact as a module in a short-lived, locked
# down process and report whether its export contract holds.
#
# Two implementations of the same CodeValidator contract:
# - DenoSandbox: local `deno run` with read access to its own folder only
#   (no network, no writes, no env, no prompts)
# - DockerSandbox: the same harness inside a throwaway container
#   (network disabled, memory capped, read-only root filesystem)
#
# Safety Features:
# - Dead Man's Switch: hard timeout, no partial credit
# - The artifact is always copied to a fresh file; callers' files are
#   never executed in place
# -----------------------------------------------------------------------------

import io
import os
import subprocess
import tarfile
import tempfile
import threading
from pathlib import Path
from typing import Protocol

from docker.errors import DockerException
from docker.models.containers import Container
from rich.console import Console

from smply.domain.models import ValidationOutcome
from smply.infra.docker_client import DockerProvider, DockerProviderError

console = Console(stderr=True)

# Configuration
VALIDATION_TIMEOUT_SECONDS = 30
MEMORY_LIMIT = "256m"
SANDBOX_IMAGE = "denoland/deno:alpine"
CONTAINER_WORKDIR = "/sandbox"
ARTIFACT_FILE_NAME = "machine.mjs"
HARNESS_FILE_NAME = "validate.mjs"
TIMEOUT_EXIT_SIGNAL = -1

# Loaded next to the artifact. Any thrown error exits non-zero with the
# message on stderr.
HARNESS_SOURCE = """\
import * as mod from "./machine.mjs";

const assert = (ok, message) => {
  if (!ok) {
    throw new Error(message);
  }
};

assert(
  typeof mod.allowRead === "function",
  "bundle must export an allowRead function",
);
assert(
  typeof mod.allowWrite === "function",
  "bundle must export an allowWrite function",
);

const machine = mod.default;
assert(
  machine && machine.__xstatenode === true,
  "bundle must default-export an xstate machine created with createMachine",
);

// Dereferences every transition target; dangling state references throw.
void machine.definition;
for (const id of machine.stateIds ?? []) {
  machine.getStateNodeById(id);
}
"""


class CodeValidator(Protocol):
    """Anything that can run an artifact in isolation and judge its shape."""

    def check(self, code: bytes) -> ValidationOutcome:
        ...


def _decode(output: bytes | str | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


class DenoSandbox:
    """
    Runs the harness with a local deno binary.

    Permissions are explicit: read access to the sandbox folder, nothing else.
    """

    def __init__(
        self,
        workspace: Path,
        deno_binary: str = "deno",
        timeout: float = VALIDATION_TIMEOUT_SECONDS,
    ) -> None:
        self._workspace = Path(workspace)
        self._deno = deno_binary
        self._timeout = timeout

    def _prepare(self, code: bytes) -> Path:
        """Copy the artifact and harness into a fresh folder."""
        sandbox_dir = Path(tempfile.mkdtemp(prefix="validate-", dir=self._workspace))
        (sandbox_dir / ARTIFACT_FILE_NAME).write_bytes(code)
        (sandbox_dir / HARNESS_FILE_NAME).write_text(HARNESS_SOURCE, encoding="utf-8")
        return sandbox_dir

    def command(self, sandbox_dir: Path) -> list[str]:
        return [
            self._deno,
            "run",
            "--no-prompt",
            "--no-remote",
            "--no-config",
            f"--allow-read={sandbox_dir}",
            str(sandbox_dir / HARNESS_FILE_NAME),
        ]

    def check(self, code: bytes) -> ValidationOutcome:
        sandbox_dir = self._prepare(code)
        env = {
            "PATH": os.environ.get("PATH", ""),
            "DENO_DIR": str(sandbox_dir / ".deno"),
            "NO_COLOR": "1",
        }

        console.print(f"[cyan][SANDBOX] Validating bundle (TTL: {self._timeout}s)...[/cyan]")
        try:
            result = subprocess.run(
                self.command(sandbox_dir),
                cwd=str(sandbox_dir),
                env=env,
                capture_output=True,
                timeout=self._timeout,
                check=False,
            )
        except FileNotFoundError as e:
            return ValidationOutcome(
                passed=False,
                exit_signal=TIMEOUT_EXIT_SIGNAL,
                diagnostics=f"deno not found ({self._deno}): {e}",
            )
        except subprocess.TimeoutExpired as e:
            console.print("[red][SANDBOX] TIMEOUT! Validation process killed[/red]")
            return ValidationOutcome(
                passed=False,
                exit_signal=TIMEOUT_EXIT_SIGNAL,
                diagnostics=f"validation timed out after {self._timeout}s\n{_decode(e.stderr)}".strip(),
            )

        return ValidationOutcome(
            passed=result.returncode == 0,
            exit_signal=result.returncode,
            diagnostics=_decode(result.stderr).strip(),
        )


class DockerSandbox:
    """
    Runs the harness inside a disposable container.

    The container has no network, a memory cap and a read-only root; only the
    tmpfs work folder is writable. It is removed on every path.
    """

    def __init__(
        self,
        provider: DockerProvider,
        image: str = SANDBOX_IMAGE,
        timeout: float = VALIDATION_TIMEOUT_SECONDS,
        mem_limit: str = MEMORY_LIMIT,
    ) -> None:
        self._provider = provider
        self._image = image
        self._timeout = timeout
        self._mem_limit = mem_limit

    def _create_tar(self, code: bytes) -> bytes:
        """In-memory tar with the artifact and the harness."""
        tar_buffer = io.BytesIO()

        with tarfile.open(fileobj=tar_buffer, mode="w") as tar:
            for name, content in (
                (ARTIFACT_FILE_NAME, code),
                (HARNESS_FILE_NAME, HARNESS_SOURCE.encode("utf-8")),
            ):
                info = tarfile.TarInfo(name=name)
                info.size = len(content)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(content))

        tar_buffer.seek(0)
        return tar_buffer.read()

    def _timed_out(self) -> ValidationOutcome:
        return ValidationOutcome(
            passed=False,
            exit_signal=TIMEOUT_EXIT_SIGNAL,
            diagnostics=f"validation timed out after {self._timeout}s",
        )

    def command(self) -> list[str]:
        return [
            "deno",
            "run",
            "--no-prompt",
            "--no-remote",
            "--no-config",
            f"--allow-read={CONTAINER_WORKDIR}",
            f"{CONTAINER_WORKDIR}/{HARNESS_FILE_NAME}",
        ]

    def check(self, code: bytes) -> ValidationOutcome:
        try:
            client = self._provider.get_client()
        except DockerProviderError as e:
            return ValidationOutcome(passed=False, exit_signal=TIMEOUT_EXIT_SIGNAL, diagnostics=str(e))

        container: Container | None = None
        timeout_triggered = threading.Event()

        def _dead_mans_switch():
            """Kill the container after timeout."""
            timeout_triggered.set()
            if container:
                try:
                    console.print("[red][SANDBOX] TIMEOUT! Killing container...[/red]")
                    container.kill()
                except DockerException as e:
                    console.print(f"[yellow][SANDBOX] Kill failed: {e}[/yellow]")

        timer = threading.Timer(self._timeout, _dead_mans_switch)
        timer.daemon = True
        timer.start()

        console.print(f"[cyan][SANDBOX] Validating bundle in {self._image} (TTL: {self._timeout}s)...[/cyan]")
        try:
            container = client.containers.run(
                self._image,
                entrypoint=["tail", "-f", "/dev/null"],
                detach=True,
                auto_remove=False,
                network_disabled=True,
                mem_limit=self._mem_limit,
                read_only=True,
                tmpfs={CONTAINER_WORKDIR: "rw,size=64m", "/deno-dir": "rw,size=64m"},
                environment={"DENO_DIR": "/deno-dir", "NO_COLOR": "1"},
                working_dir=CONTAINER_WORKDIR,
            )
            if timeout_triggered.is_set():
                # The switch fired while the container was still starting.
                _dead_mans_switch()
                return self._timed_out()

            container.put_archive(CONTAINER_WORKDIR, self._create_tar(code))

            exit_code, output = container.exec_run(
                cmd=self.command(), workdir=CONTAINER_WORKDIR, demux=True
            )
            stderr = _decode(output[1]) if isinstance(output, tuple) else _decode(output)

            if timeout_triggered.is_set():
                return self._timed_out()

            return ValidationOutcome(
                passed=exit_code == 0,
                exit_signal=exit_code if exit_code is not None else TIMEOUT_EXIT_SIGNAL,
                diagnostics=stderr.strip(),
            )

        except DockerException as e:
            if timeout_triggered.is_set():
                return self._timed_out()
            return ValidationOutcome(
                passed=False, exit_signal=TIMEOUT_EXIT_SIGNAL, diagnostics=f"sandbox failure: {e}"
            )

        finally:
            timer.cancel()
            if container:
                try:
                    container.remove(force=True)
                except DockerException as e:
                    console.print(f"[yellow][SANDBOX] Container cleanup failed: {e}[/yellow]")

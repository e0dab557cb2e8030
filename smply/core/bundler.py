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
# THE BUNDLER - ENTRYPOINT -> SINGLE ESM ARTIFACT
# -----------------------------------------------------------------------------
# Responsibility: Resolve the module graph reachable from an entrypoint and
# emit one self-contained ECMAScript module that the backend can execute.
#
# Toolchain:
# - node dialect: the esbuild CLI (node_modules resolution)
# - deno dialect: esbuild driven from `deno run` with the deno loader
#   plugins (https://, npm: and jsr: specifiers)
#
# Output profile (both dialects): browser platform, ESM, minified, names kept
# so the validator can still see exported function names.
#
# Variants:
# - externalized: `xstate` left as the bare import `npm:xstate` so the backend
#   can substitute its own optimized copy (this is what gets uploaded)
# - fully inlined: everything bundled (this is what gets validated)
#
# Intermediate files live in a private directory inside the caller's
# workspace. The Bundler never deletes them; the workspace owner does.
# -----------------------------------------------------------------------------

import subprocess
import tempfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from rich.console import Console

from smply.domain.errors import SmplyError
from smply.domain.models import BuildArtifact, Dialect

console = Console(stderr=True)

# Configuration
BUILD_TIMEOUT_SECONDS = 120
RUNTIME_DEPENDENCY = "xstate"
EXTERNAL_RUNTIME_SPECIFIER = "npm:xstate"
OUTPUT_FILE_NAME = "machine.js"
DENO_BUILD_SCRIPT_NAME = "deno-build.mjs"

# Runs under `deno run`. Args: <entrypoint> <outfile> [<external specifier>]
DENO_BUILD_SCRIPT = """\
import * as esbuild from "npm:esbuild@0.20.2";
import { denoPlugins } from "jsr:@luca/esbuild-deno-loader@0.10.3";

const [entryPoint, outfile, external] = Deno.args;

try {
  await esbuild.build({
    entryPoints: [entryPoint],
    bundle: true,
    outfile,
    platform: "browser",
    format: "esm",
    minify: true,
    keepNames: true,
    legalComments: "none",
    define: { "process.env.NODE_ENV": '"production"' },
    drop: ["debugger"],
    logLevel: "error",
    plugins: [...denoPlugins()],
    ...(external
      ? { external: [external], alias: { xstate: external } }
      : {}),
  });
} finally {
  esbuild.stop();
}
"""


class BuildError(SmplyError):
    """Raised when an entrypoint cannot be turned into a non-empty artifact."""

    category = "build"

    def __init__(self, entrypoint: str, diagnostics: str) -> None:
        summary = diagnostics.strip().splitlines()[0] if diagnostics.strip() else "no output"
        super().__init__(f"failed to build '{entrypoint}': {summary}")
        self.entrypoint = entrypoint
        self.diagnostics = diagnostics


class Bundler:
    """
    Builds machine definitions into single-file ESM artifacts.

    Shells out to the dialect's toolchain; the binaries are configurable so
    tests and unusual installs can point elsewhere.
    """

    def __init__(
        self,
        esbuild_binary: str = "esbuild",
        deno_binary: str = "deno",
        timeout: float = BUILD_TIMEOUT_SECONDS,
    ) -> None:
        self._esbuild = esbuild_binary
        self._deno = deno_binary
        self._timeout = timeout

    def _esbuild_command(self, entrypoint: Path, outfile: Path, externalize: bool) -> list[str]:
        """esbuild CLI invocation for the node dialect."""
        cmd = [
            self._esbuild,
            str(entrypoint),
            "--bundle",
            f"--outfile={outfile}",
            "--platform=browser",
            "--format=esm",
            "--minify",
            "--keep-names",
            "--legal-comments=none",
            '--define:process.env.NODE_ENV="production"',
            "--drop:debugger",
            "--log-level=error",
        ]
        if externalize:
            cmd += [
                f"--external:{EXTERNAL_RUNTIME_SPECIFIER}",
                f"--alias:{RUNTIME_DEPENDENCY}={EXTERNAL_RUNTIME_SPECIFIER}",
            ]
        return cmd

    def _deno_command(
        self, entrypoint: Path, outfile: Path, externalize: bool, script: Path
    ) -> list[str]:
        """`deno run` invocation of the generated build script."""
        cmd = [self._deno, "run", "--allow-all", "--quiet", str(script), str(entrypoint), str(outfile)]
        if externalize:
            cmd.append(EXTERNAL_RUNTIME_SPECIFIER)
        return cmd

    def _run(self, cmd: list[str], entrypoint: Path, cwd: Path) -> None:
        """
        Run one toolchain process to completion.

        Raises:
            BuildError: Tool missing, timeout, or non-zero exit.
        """
        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd),
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise BuildError(str(entrypoint), f"build tool not found: {cmd[0]} ({e})") from e
        except subprocess.TimeoutExpired as e:
            raise BuildError(str(entrypoint), f"build timed out after {self._timeout}s") from e

        if result.returncode != 0:
            diagnostics = (result.stderr or result.stdout or "").strip()
            console.print(f"[red][BUNDLER] Build failed (exit: {result.returncode})[/red]")
            raise BuildError(str(entrypoint), diagnostics or f"exit code {result.returncode}")

    def build(
        self,
        entrypoint: Path,
        dialect: Dialect,
        externalize_runtime_dep: bool,
        workspace: Path,
    ) -> BuildArtifact:
        """
        Bundle one variant of an entrypoint.

        Args:
            entrypoint: Path to the dialect entrypoint.
            dialect: Module resolution convention to use.
            externalize_runtime_dep: Leave `xstate` as an unresolved import.
            workspace: Caller-owned directory for intermediate output.

        Returns:
            BuildArtifact whose `code` is the bundled module.

        Raises:
            BuildError: On any resolution/compile failure or empty output.
        """
        entrypoint = Path(entrypoint).resolve()
        if not entrypoint.is_file():
            raise BuildError(str(entrypoint), "entrypoint does not exist")

        out_dir = Path(tempfile.mkdtemp(prefix="build-", dir=workspace))
        outfile = out_dir / OUTPUT_FILE_NAME
        variant = "externalized" if externalize_runtime_dep else "inlined"
        console.print(f"[cyan][BUNDLER] Building {entrypoint.name} ({dialect.value}, {variant})...[/cyan]")

        if dialect == Dialect.DENO:
            script = out_dir / DENO_BUILD_SCRIPT_NAME
            script.write_text(DENO_BUILD_SCRIPT, encoding="utf-8")
            cmd = self._deno_command(entrypoint, outfile, externalize_runtime_dep, script)
        else:
            cmd = self._esbuild_command(entrypoint, outfile, externalize_runtime_dep)

        self._run(cmd, entrypoint, cwd=entrypoint.parent)

        try:
            code = outfile.read_bytes()
        except OSError as e:
            raise BuildError(str(entrypoint), f"build produced no output file: {e}") from e

        if not code.strip():
            raise BuildError(str(entrypoint), "build produced empty output")

        console.print(f"[green][BUNDLER] Built {entrypoint.name} ({variant}, {len(code)} bytes)[/green]")
        return BuildArtifact(file_name=entrypoint.name, code=code)

    def build_variants(self, entrypoint: Path, dialect: Dialect, workspace: Path) -> BuildArtifact:
        """
        Build the externalized and fully inlined variants together.

        The two toolchain runs are independent and execute concurrently;
        both must succeed.

        Returns:
            BuildArtifact with `code` = externalized, `bundled` = fully inlined.
        """
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="bundler") as pool:
            externalized = pool.submit(self.build, entrypoint, dialect, True, workspace)
            inlined = pool.submit(self.build, entrypoint, dialect, False, workspace)
            # Wait on both before surfacing an error so no build outlives the call.
            errors = [f.exception() for f in (externalized, inlined)]

        for error in errors:
            if error is not None:
                raise error

        return BuildArtifact(
            file_name=externalized.result().file_name,
            code=externalized.result().code,
            bundled=inlined.result().code,
        )

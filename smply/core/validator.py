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
# THE BUNDLE VALIDATOR - THE GATE BEFORE PUBLISHING
# -----------------------------------------------------------------------------
# Responsibility: Prove the artifact honors the machine definition contract
# before a single byte leaves the machine:
#   1. exports an allowRead function
#   2. exports an allowWrite function
#   3. default-exports an xstate machine
#   4. every state reference inside that machine resolves
#
# The actual execution happens in a sandbox (see smply.infra.sandbox).
# A failed or timed out run BLOCKS the publish with the sandbox's stderr.
# -----------------------------------------------------------------------------

from rich.console import Console

from smply.domain.errors import SmplyError
from smply.domain.models import BuildArtifact, ValidationOutcome
from smply.infra.sandbox import CodeValidator

console = Console(stderr=True)


class ValidationError(SmplyError):
    """Raised when the sandboxed run rejected the artifact or never finished."""

    category = "validation"

    def __init__(self, diagnostics: str, exit_signal: int = 1) -> None:
        super().__init__(diagnostics or f"bundle validation failed (exit: {exit_signal})")
        self.diagnostics = diagnostics
        self.exit_signal = exit_signal


class BundleValidator:
    """Runs an artifact through a CodeValidator and enforces the verdict."""

    def __init__(self, sandbox: CodeValidator) -> None:
        self._sandbox = sandbox

    def validate(self, artifact: BuildArtifact) -> ValidationOutcome:
        """
        Validate the artifact's export contract.

        The fully inlined copy is checked when one exists, since the
        externalized copy imports a module only the backend provides.

        Returns:
            The passing ValidationOutcome.

        Raises:
            ValidationError: If the sandbox run did not pass.
        """
        outcome = self._sandbox.check(artifact.validation_code)

        if not outcome.passed:
            console.print(f"[red][VALIDATOR] Bundle REJECTED (exit: {outcome.exit_signal})[/red]")
            raise ValidationError(outcome.diagnostics, exit_signal=outcome.exit_signal)

        console.print(f"[green][VALIDATOR] Bundle PASSED: {artifact.file_name}[/green]")
        return outcome

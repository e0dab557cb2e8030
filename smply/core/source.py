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
# THE SOURCE SELECTOR
# -----------------------------------------------------------------------------
# Responsibility: Turn the three mutually exclusive source flags
# (--js, --node, --deno) into exactly one SourceSpec.
#
# The Rule: exactly one source. Zero or several is a ConfigurationError,
# raised before anything touches the disk or the network.
# -----------------------------------------------------------------------------

from pathlib import Path

from smply.core.bundler import BuildError
from smply.domain.errors import ConfigurationError
from smply.domain.models import BuildArtifact, SourceKind, SourceSpec

SOURCE_FLAGS = {
    SourceKind.JS: "--js",
    SourceKind.NODE: "--node",
    SourceKind.DENO: "--deno",
}


class SourceSelector:
    """Validates and normalizes source flags. Pure, performs no I/O."""

    def resolve(
        self,
        js: str | Path | None = None,
        node: str | Path | None = None,
        deno: str | Path | None = None,
    ) -> SourceSpec:
        """
        Pick the single populated source.

        Args:
            js: Path to a pre-built single-file ECMAScript module.
            node: Path to a Node.js entrypoint.
            deno: Path to a Deno entrypoint.

        Returns:
            SourceSpec for the one populated input.

        Raises:
            ConfigurationError: If zero or more than one input is populated.
        """
        supplied = [
            (kind, value)
            for kind, value in ((SourceKind.JS, js), (SourceKind.NODE, node), (SourceKind.DENO, deno))
            if value is not None and str(value).strip()
        ]

        if len(supplied) != 1:
            flags = ", ".join(SOURCE_FLAGS.values())
            raise ConfigurationError(
                f"exactly one source required: specify one of {flags} (got {len(supplied)})"
            )

        kind, value = supplied[0]
        return SourceSpec(kind=kind, path=Path(value))


def read_raw_script(spec: SourceSpec) -> BuildArtifact:
    """
    Load a pre-built script as an artifact, unchanged.

    Raises:
        BuildError: If the file is missing, unreadable or empty.
    """
    try:
        code = spec.path.read_bytes()
    except OSError as e:
        raise BuildError(str(spec.path), f"could not read script: {e}") from e

    if not code:
        raise BuildError(str(spec.path), "script is empty")

    return BuildArtifact(file_name=spec.path.name, code=code)

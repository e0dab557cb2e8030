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
# TEMP WORKSPACE
# -----------------------------------------------------------------------------
# Responsibility: One private temporary directory per publish invocation.
# Created on entry to the build, removed on every exit path (success, failure,
# Ctrl-C). Removal problems are reported but never mask the real failure.
# -----------------------------------------------------------------------------

import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from rich.console import Console

from smply.domain.errors import SmplyError

console = Console(stderr=True)

WORKSPACE_PREFIX = "smply-"


class FileSystemError(SmplyError):
    """Raised when the workspace cannot be created."""

    category = "filesystem"

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


def release_workspace(path: Path) -> bool:
    """
    Remove a workspace directory tree.

    Returns:
        True if the directory is gone afterwards, False if removal failed.
    """
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return True
    except OSError as e:
        console.print(f"[yellow][WORKSPACE] Cleanup failed for {path}: {e}[/yellow]")
        return False
    console.print(f"[dim][WORKSPACE] Released {path}[/dim]")
    return True


@contextmanager
def scoped_workspace(prefix: str = WORKSPACE_PREFIX, parent: Path | None = None) -> Iterator[Path]:
    """
    Acquire a private temp directory for the duration of the `with` block.

    Args:
        prefix: Directory name prefix.
        parent: Where to create it (defaults to the system temp dir).

    Yields:
        Path to the new, empty directory.

    Raises:
        FileSystemError: If the directory cannot be created.
    """
    try:
        path = Path(tempfile.mkdtemp(prefix=prefix, dir=parent))
    except OSError as e:
        raise FileSystemError(f"could not create workspace: {e}", path=str(parent or "")) from e

    console.print(f"[dim][WORKSPACE] Acquired {path}[/dim]")
    try:
        yield path
    finally:
        release_workspace(path)

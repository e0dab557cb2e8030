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
# DOMAIN MODELS - BUILD & PUBLISH CONTRACTS
# -----------------------------------------------------------------------------
# These Pydantic models are the values that flow through the publish pipeline:
#
#   SourceSpec -> BuildArtifact -> ValidationOutcome -> VersionCreationTicket
#                                                    -> PublishedVersion
#
# Nothing here performs I/O. Invalid values are rejected at construction so
# later stages never see an empty artifact or an unusable machine name.
# -----------------------------------------------------------------------------

import base64
import uuid
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

MACHINE_NAME_PATTERN = r"^[a-zA-Z0-9_-]+$"


class SourceKind(str, Enum):
    """The three mutually exclusive ways to supply a machine definition."""

    JS = "js"
    NODE = "node"
    DENO = "deno"


class Dialect(str, Enum):
    """
    Module resolution convention of an entrypoint that must be bundled.

    node resolves bare specifiers through node_modules.
    deno resolves https://, npm: and jsr: specifiers remotely.
    """

    NODE = "node"
    DENO = "deno"


class SourceSpec(BaseModel):
    """A single, validated source selection. `kind` is the union tag."""

    kind: SourceKind
    path: Path

    @property
    def dialect(self) -> Dialect | None:
        """The bundling dialect, or None for a pre-built script."""
        if self.kind == SourceKind.JS:
            return None
        return Dialect(self.kind.value)


class BuildArtifact(BaseModel):
    """
    The deployable output of a build.

    Fields:
    - file_name: basename reported to the upload endpoint
    - code: the canonical artifact that gets uploaded (never empty)
    - bundled: fully inlined copy, only present when `code` externalizes
      the runtime dependency
    """

    file_name: str = Field(..., min_length=1)
    code: bytes
    bundled: bytes | None = None

    @field_validator("code")
    @classmethod
    def _code_not_empty(cls, value: bytes) -> bytes:
        if not value:
            raise ValueError("artifact code must not be empty")
        return value

    @property
    def validation_code(self) -> bytes:
        """Code to run in the sandbox: the copy with no unresolved imports."""
        return self.bundled or self.code


class ValidationOutcome(BaseModel):
    """Result of one sandboxed validation run."""

    passed: bool
    exit_signal: int
    diagnostics: str = ""


class VersionCreationTicket(BaseModel):
    """Phase 1 response: where and how to upload the code for a new version."""

    machine_version_id: str = Field(..., alias="machineVersionId", min_length=1)
    upload_url: str = Field(..., alias="codeUploadUrl", min_length=1)
    upload_fields: dict[str, str] = Field(default_factory=dict, alias="codeUploadFields")

    class Config:
        """Accept both wire names and Python names."""

        populate_by_name = True


class PublishRequest(BaseModel):
    """What the caller wants published. Carried unchanged through all phases."""

    machine: str = Field(..., min_length=1, max_length=128, pattern=MACHINE_NAME_PATTERN)
    version_reference: str = Field(..., min_length=1)
    make_current: bool = False

    class Config:
        str_strip_whitespace = True


class PublishedVersion(BaseModel):
    """Identifying metadata of a version that reached the Done state."""

    machine: str
    machine_version_id: str
    version_reference: str
    make_current: bool
    created_at: str | None = None

    @property
    def pretty_id(self) -> str:
        """
        Public form of the version id: ver_<base64url(uuid bytes)>.

        Ids that are not UUIDs are assumed to be in public form already.
        """
        try:
            raw = uuid.UUID(self.machine_version_id).bytes
        except ValueError:
            return self.machine_version_id
        return "ver_" + base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


class PublishState(str, Enum):
    """States of the publish state machine. `done` and `failed` are terminal."""

    SELECTING_SOURCE = "selecting_source"
    BUILDING = "building"
    VALIDATING = "validating"
    COMPRESSING = "compressing"
    CREATING_VERSION = "creating_version"
    UPLOADING_CODE = "uploading_code"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PublishState.DONE, PublishState.FAILED)

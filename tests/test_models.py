"""
Tests for Pydantic domain models.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from smply.domain.models import (
    BuildArtifact,
    Dialect,
    PublishedVersion,
    PublishRequest,
    PublishState,
    SourceKind,
    SourceSpec,
    VersionCreationTicket,
)


class TestSourceSpec:
    """Tests for SourceSpec model."""

    def test_js_has_no_dialect(self):
        spec = SourceSpec(kind=SourceKind.JS, path=Path("machine.js"))
        assert spec.dialect is None

    def test_node_and_deno_dialects(self):
        assert SourceSpec(kind="node", path=Path("a.ts")).dialect == Dialect.NODE
        assert SourceSpec(kind="deno", path=Path("a.ts")).dialect == Dialect.DENO

    def test_invalid_kind(self):
        with pytest.raises(ValidationError):
            SourceSpec(kind="python", path=Path("a.py"))


class TestBuildArtifact:
    """Tests for BuildArtifact model."""

    def test_empty_code_rejected(self):
        """An artifact can never carry empty code."""
        with pytest.raises(ValidationError):
            BuildArtifact(file_name="machine.js", code=b"")

    def test_validation_code_prefers_inlined_copy(self):
        artifact = BuildArtifact(file_name="m.ts", code=b"import 'npm:xstate'", bundled=b"inlined")
        assert artifact.validation_code == b"inlined"

    def test_validation_code_falls_back_to_code(self):
        artifact = BuildArtifact(file_name="m.js", code=b"export default 1")
        assert artifact.validation_code == b"export default 1"


class TestVersionCreationTicket:
    """Tests for the phase 1 response model."""

    def test_parses_wire_names(self):
        ticket = VersionCreationTicket.model_validate(
            {
                "machineVersionId": "ver_1",
                "codeUploadUrl": "https://up.example.com",
                "codeUploadFields": {"key": "k"},
            }
        )
        assert ticket.machine_version_id == "ver_1"
        assert ticket.upload_url == "https://up.example.com"
        assert ticket.upload_fields == {"key": "k"}

    def test_missing_upload_url(self):
        with pytest.raises(ValidationError):
            VersionCreationTicket.model_validate({"machineVersionId": "ver_1"})


class TestPublishRequest:
    """Tests for PublishRequest model."""

    def test_valid_request(self):
        request = PublishRequest(machine="toggle_v2-beta", version_reference="abc123")
        assert request.make_current is False

    @pytest.mark.parametrize("name", ["has space", "dots.not.allowed", "", "slash/name"])
    def test_invalid_machine_names(self, name):
        with pytest.raises(ValidationError):
            PublishRequest(machine=name, version_reference="1.0.0")

    def test_empty_version_reference(self):
        with pytest.raises(ValidationError):
            PublishRequest(machine="toggle", version_reference="   ")


class TestPublishedVersion:
    """Tests for PublishedVersion model."""

    def test_pretty_id_from_uuid(self):
        version = PublishedVersion(
            machine="toggle",
            machine_version_id="00000000-0000-0000-0000-000000000000",
            version_reference="1.0.0",
            make_current=True,
        )
        assert version.pretty_id == "ver_AAAAAAAAAAAAAAAAAAAAAA"

    def test_pretty_id_passthrough(self):
        version = PublishedVersion(
            machine="toggle",
            machine_version_id="ver_already_pretty",
            version_reference="1.0.0",
            make_current=False,
        )
        assert version.pretty_id == "ver_already_pretty"


class TestPublishState:
    """Tests for PublishState enum."""

    def test_terminal_states(self):
        assert PublishState.DONE.is_terminal
        assert PublishState.FAILED.is_terminal
        assert not PublishState.UPLOADING_CODE.is_terminal

"""
Pytest configuration and fixtures for smply tests.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from smply.domain.models import ValidationOutcome, VersionCreationTicket  # noqa: E402

VALID_MACHINE_JS = """\
export const allowRead = ({ machineInstanceName, authContext }) =>
  machineInstanceName === authContext.sub;
export const allowWrite = ({ machineInstanceName, authContext }) =>
  machineInstanceName === authContext.sub;
export default { __xstatenode: true, id: "toggle", definition: {}, stateIds: [] };
"""

MISSING_WRITE_JS = """\
export const allowRead = () => true;
export default { __xstatenode: true, id: "toggle", definition: {}, stateIds: [] };
"""


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep the developer's own smply settings out of the tests."""
    for var in (
        "SMPLY_API_URL",
        "SMPLY_ACCESS_TOKEN",
        "SMPLY_ORG",
        "SMPLY_ESBUILD",
        "SMPLY_DENO",
        "SMPLY_SANDBOX",
        "SMPLY_SANDBOX_IMAGE",
        "SMPLY_VALIDATION_TIMEOUT",
        "SMPLY_BUILD_TIMEOUT",
        "SMPLY_HTTP_TIMEOUT",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("SMPLY_CONFIG", str(tmp_path / "no-such-config.yaml"))


@pytest.fixture
def valid_script(tmp_path):
    """A pre-built machine definition that honors the export contract."""
    path = tmp_path / "machine.js"
    path.write_text(VALID_MACHINE_JS)
    return path


@pytest.fixture
def missing_write_script(tmp_path):
    """A pre-built machine definition without allowWrite."""
    path = tmp_path / "no-write.js"
    path.write_text(MISSING_WRITE_JS)
    return path


class ContractSandbox:
    """
    Stand-in CodeValidator: passes when both predicates are mentioned.

    Records every payload it was asked to check.
    """

    def __init__(self):
        self.checked: list[bytes] = []

    def check(self, code: bytes) -> ValidationOutcome:
        self.checked.append(code)
        if b"allowRead" in code and b"allowWrite" in code:
            return ValidationOutcome(passed=True, exit_signal=0, diagnostics="")
        return ValidationOutcome(
            passed=False,
            exit_signal=1,
            diagnostics="error: Uncaught Error: bundle must export an allowWrite function",
        )


@pytest.fixture
def contract_sandbox():
    return ContractSandbox()


@pytest.fixture
def ticket():
    return VersionCreationTicket(
        machineVersionId="0b5e8a1c-6c55-4c8e-9f0a-3f1d2c4b5a69",
        codeUploadUrl="https://uploads.example.com/code",
        codeUploadFields={"key": "org/machine/ver.js", "policy": "abc", "x-amz-signature": "sig"},
    )


@pytest.fixture
def mock_api_client(ticket):
    """Mock StateBackedClient whose three phases all succeed."""
    client = MagicMock()
    client.create_version.return_value = ticket
    client.upload_code.return_value = None
    client.finalize_version.return_value = {"createdAt": "2026-10-19T10:00:00Z"}
    return client


@pytest.fixture
def mock_docker_client():
    """Mock Docker client for sandbox tests."""
    client = MagicMock()
    client.ping.return_value = True

    container = MagicMock()
    container.short_id = "abc123"
    container.exec_run.return_value = (0, (b"", b""))

    client.containers.run.return_value = container

    return client

# =============================================================================
# SMPLY WORKSPACE TESTS
# =============================================================================
# The workspace must be gone after every exit path.
# =============================================================================

from unittest.mock import patch

import pytest

from smply.infra.workspace import FileSystemError, release_workspace, scoped_workspace


class TestScopedWorkspace:
    """Test scoped_workspace."""

    def test_created_and_released(self, tmp_path):
        with scoped_workspace(parent=tmp_path) as workspace:
            assert workspace.is_dir()
            assert workspace.name.startswith("smply-")
            (workspace / "nested").mkdir()
            (workspace / "nested" / "machine.js").write_text("x")

        assert not workspace.exists()

    def test_released_on_error(self, tmp_path):
        with pytest.raises(RuntimeError):
            with scoped_workspace(parent=tmp_path) as workspace:
                raise RuntimeError("build failed")

        assert not workspace.exists()

    def test_released_on_interrupt(self, tmp_path):
        with pytest.raises(KeyboardInterrupt):
            with scoped_workspace(parent=tmp_path) as workspace:
                raise KeyboardInterrupt

        assert not workspace.exists()

    def test_workspaces_are_independent(self, tmp_path):
        with scoped_workspace(parent=tmp_path) as first, scoped_workspace(parent=tmp_path) as second:
            assert first != second

    def test_creation_failure(self, tmp_path):
        with pytest.raises(FileSystemError) as exc:
            with scoped_workspace(parent=tmp_path / "missing" / "parent"):
                pass

        assert exc.value.describe().startswith("filesystem: ")

    def test_cleanup_failure_does_not_mask_primary_error(self, tmp_path):
        with patch("smply.infra.workspace.shutil.rmtree", side_effect=OSError("busy")):
            with pytest.raises(ValueError, match="primary"):
                with scoped_workspace(parent=tmp_path):
                    raise ValueError("primary")


class TestReleaseWorkspace:
    """Test release_workspace."""

    def test_already_gone(self, tmp_path):
        assert release_workspace(tmp_path / "never-existed") is True

    def test_failure_is_reported_not_raised(self, tmp_path):
        with patch("smply.infra.workspace.shutil.rmtree", side_effect=PermissionError("denied")):
            assert release_workspace(tmp_path) is False

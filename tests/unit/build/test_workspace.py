"""Unit tests for temporary workspace allocation."""

import pytest

from lfbuild.build.workspace import WORKSPACE_PREFIX, TemporaryWorkspace, allocate_workspace
from lfbuild.errors import ResourceExhaustionError


class TestAllocateWorkspace:
    """Test suite for allocate_workspace()."""

    def test_creates_directory(self, tmp_path):
        """A fresh directory is created under the parent."""
        workspace = allocate_workspace(parent=tmp_path)

        assert workspace.path.is_dir()
        assert workspace.path.parent == tmp_path
        assert workspace.path.name.startswith(WORKSPACE_PREFIX)
        workspace.release()

    def test_paths_are_unique(self, tmp_path):
        """Concurrent allocations never share a directory."""
        workspaces = [allocate_workspace(parent=tmp_path) for _ in range(20)]
        try:
            assert len({ws.path for ws in workspaces}) == 20
        finally:
            for ws in workspaces:
                ws.release()

    def test_custom_prefix(self, tmp_path):
        with allocate_workspace(prefix='gen-', parent=tmp_path) as workspace:
            assert workspace.path.name.startswith('gen-')

    def test_unwritable_parent_raises(self, tmp_path):
        """Failure to create the directory is a ResourceExhaustionError."""
        missing = tmp_path / 'does' / 'not' / 'exist'

        with pytest.raises(ResourceExhaustionError) as exc_info:
            allocate_workspace(parent=missing)

        assert str(missing) in str(exc_info.value)
        assert exc_info.value.location == str(missing)


class TestTemporaryWorkspace:
    """Test suite for TemporaryWorkspace."""

    def test_context_exit_removes_directory(self, tmp_path):
        with allocate_workspace(parent=tmp_path) as workspace:
            (workspace.path / 'generated.js').write_text('goog.provide("a");')
            path = workspace.path

        assert not path.exists()
        assert workspace.released

    def test_removed_on_exception(self, tmp_path):
        """The directory is released when the body raises."""
        with pytest.raises(RuntimeError):
            with allocate_workspace(parent=tmp_path) as workspace:
                path = workspace.path
                raise RuntimeError('boom')

        assert not path.exists()

    def test_keep_leaves_directory(self, tmp_path):
        with allocate_workspace(parent=tmp_path, keep=True) as workspace:
            path = workspace.path

        assert path.is_dir()
        assert workspace.released

    def test_release_is_idempotent(self, tmp_path):
        workspace = allocate_workspace(parent=tmp_path)
        workspace.release()
        workspace.release()

        assert not workspace.path.exists()

    def test_release_tolerates_missing_directory(self, tmp_path):
        workspace = TemporaryWorkspace(tmp_path / 'gone')
        workspace.release()

        assert workspace.released

    def test_new_file(self, tmp_path):
        """new_file creates distinct empty files inside the workspace."""
        with allocate_workspace(parent=tmp_path) as workspace:
            first = workspace.new_file(suffix='.js')
            second = workspace.new_file(suffix='.js')

            assert first != second
            assert first.parent == workspace.path
            assert first.suffix == '.js'
            assert first.read_text() == ''

    def test_new_file_after_release_raises(self, tmp_path):
        workspace = allocate_workspace(parent=tmp_path)
        workspace.release()

        with pytest.raises(ResourceExhaustionError):
            workspace.new_file()

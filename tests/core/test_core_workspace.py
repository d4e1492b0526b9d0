from __future__ import annotations

from pathlib import Path

import pytest

from idml_bridge.core import workspace


def test_ensure_workspace_creates_directories(tmp_path, monkeypatch):
    root = tmp_path / "data"
    monkeypatch.setenv(workspace.WORKSPACE_ENV, str(root))

    layout = workspace.ensure_workspace()

    assert layout.home == root.resolve()
    assert set(layout.directories) == {"config", "logs"}
    for name, path in layout.items():
        assert path.is_dir()
        assert layout.created[name] is True
    assert layout.created["home"] is True


def test_ensure_workspace_is_idempotent(tmp_path):
    env = {workspace.WORKSPACE_ENV: str(tmp_path / "existing")}

    first = workspace.ensure_workspace(env=env)
    second = workspace.ensure_workspace(env=env)

    assert first.home == second.home
    assert all(not created for created in second.created.values())


def test_custom_path_beats_environment(tmp_path):
    env = {workspace.WORKSPACE_ENV: str(tmp_path / "from-env")}
    custom = tmp_path / "custom-root"

    layout = workspace.ensure_workspace(env=env, path=custom)

    assert layout.home == custom.resolve()
    assert not (tmp_path / "from-env").exists()


def test_ensure_workspace_without_create(tmp_path):
    root = tmp_path / "deferred"

    layout = workspace.ensure_workspace(
        env={workspace.WORKSPACE_ENV: str(root)}, create=False
    )

    assert layout.home == root.resolve()
    assert not root.exists()
    assert all(not created for created in layout.created.values())


def test_ensure_workspace_errors_when_path_is_file(tmp_path):
    root = tmp_path / "file"
    root.write_text("not a dir", encoding="utf-8")

    with pytest.raises(workspace.WorkspaceError):
        workspace.ensure_workspace(path=root)


def test_path_for_unknown_key_errors(tmp_path):
    layout = workspace.ensure_workspace(path=tmp_path / "ws", create=False)

    with pytest.raises(KeyError, match="output"):
        layout.path_for("output")


def test_default_location_falls_back_to_tempdir(tmp_path, monkeypatch):
    blocked = tmp_path / "home" / ".idml-bridge-data"
    monkeypatch.setattr(workspace, "DEFAULT_WORKSPACE", blocked)
    monkeypatch.setattr(
        workspace.tempfile, "gettempdir", lambda: str(tmp_path / "tmp")
    )
    real_ensure_dir = workspace._ensure_dir

    def fake_ensure_dir(path: Path) -> bool:
        if path == blocked.resolve():
            raise PermissionError("denied")
        return real_ensure_dir(path)

    monkeypatch.setattr(workspace, "_ensure_dir", fake_ensure_dir)

    layout = workspace.ensure_workspace(env={})

    assert layout.home == tmp_path / "tmp" / "idml-bridge-data"
    assert (layout.home / "config").is_dir()


def test_workspace_error_when_all_candidates_fail(tmp_path, monkeypatch):
    monkeypatch.setattr(
        workspace, "DEFAULT_WORKSPACE", tmp_path / "home" / ".data"
    )
    monkeypatch.setattr(
        workspace.tempfile, "gettempdir", lambda: str(tmp_path / "tmp")
    )

    def deny(path: Path) -> bool:
        raise PermissionError("nope")

    monkeypatch.setattr(workspace, "_ensure_dir", deny)

    with pytest.raises(workspace.WorkspaceError, match="Unable to prepare"):
        workspace.ensure_workspace(env={})

"""
Tests for the tpm command line.
"""

import os
import tempfile
from pathlib import Path

import pytest

from tether.lock import from_path
from tpm.cli import main


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep TETHER_* variables from the host out of the tests."""
    for name in list(os.environ):
        if name.startswith("TETHER_"):
            monkeypatch.delenv(name)


def run(root: Path, *args: str) -> int:
    return main(
        [
            "--quiet",
            "--home",
            str(root / "home"),
            "--config-dir",
            str(root / "config"),
            "--data-dir",
            str(root / "data"),
            *args,
        ]
    )


def write_config(root: Path, text: str) -> Path:
    path = root / "config" / "plugins.toml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def make_plugin(root: Path) -> Path:
    plugin_dir = root / "plugins" / "test"
    plugin_dir.mkdir(parents=True)
    (plugin_dir / "test.plugin.zsh").write_text("echo test\n")
    return plugin_dir


class TestLockCommand:
    """Test `tpm lock`."""

    def test_lock_writes_lock_file(self):
        """A successful lock should write the lock file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            plugin_dir = make_plugin(root)
            write_config(
                root,
                f'[plugins.test]\nlocal = "{plugin_dir}"\n\n[plugins.hi]\ninline = "echo hi"\n',
            )

            assert run(root, "lock") == 0

            locked = from_path(root / "data" / "plugins.lock")
            assert [p.name for p in locked.plugins] == ["test", "hi"]
            assert locked.plugins[0].files == [plugin_dir / "test.plugin.zsh"]

    def test_failed_lock_writes_nothing(self):
        """A lock with errors should exit 1 and leave no lock file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            write_config(root, f'[plugins.gone]\nlocal = "{root / "missing"}"\n')

            assert run(root, "lock") == 1
            assert not (root / "data" / "plugins.lock").exists()

    def test_missing_config(self):
        """A missing config file should exit 1."""
        with tempfile.TemporaryDirectory() as tmpdir:
            assert run(Path(tmpdir), "lock") == 1

    def test_invalid_config(self, capsys):
        """An invalid config should report the error and exit 1."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            write_config(root, 'shell = "fish"\n')

            assert run(root, "lock") == 1
            assert "invalid config" in capsys.readouterr().err


class TestSourceCommand:
    """Test `tpm source`."""

    def test_source_locks_and_prints_script(self, capsys):
        """Without a lock file, source should lock and print the script."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            plugin_dir = make_plugin(root)
            write_config(
                root,
                f'[plugins.test]\nlocal = "{plugin_dir}"\n\n[plugins.hi]\ninline = "echo hi"\n',
            )

            assert run(root, "source") == 0

            out = capsys.readouterr().out
            assert out == f'source "{plugin_dir / "test.plugin.zsh"}"\necho hi\n'
            assert (root / "data" / "plugins.lock").exists()

    def test_source_reuses_valid_lock(self, capsys):
        """A valid lock file should be rendered without locking again."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            plugin_dir = make_plugin(root)
            write_config(root, f'[plugins.test]\nlocal = "{plugin_dir}"\n')
            assert run(root, "lock") == 0
            capsys.readouterr()

            lock_file = root / "data" / "plugins.lock"
            stamp = lock_file.stat().st_mtime
            assert run(root, "source") == 0

            assert capsys.readouterr().out == f'source "{plugin_dir / "test.plugin.zsh"}"\n'
            assert lock_file.stat().st_mtime == stamp

    def test_source_relocks_when_files_change(self, capsys):
        """A lock referencing deleted files should be replaced."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            plugin_dir = make_plugin(root)
            write_config(root, f'[plugins.test]\nlocal = "{plugin_dir}"\n')
            assert run(root, "lock") == 0
            capsys.readouterr()

            (plugin_dir / "test.plugin.zsh").unlink()
            (plugin_dir / "other.zsh").write_text("")
            assert run(root, "source") == 0

            assert capsys.readouterr().out == f'source "{plugin_dir / "other.zsh"}"\n'

    def test_source_relocks_when_lock_file_is_corrupt(self, capsys):
        """A lock file with a malformed plugin entry should be replaced."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            plugin_dir = make_plugin(root)
            write_config(root, f'[plugins.test]\nlocal = "{plugin_dir}"\n')
            assert run(root, "lock") == 0
            capsys.readouterr()

            lock_file = root / "data" / "plugins.lock"
            text = lock_file.read_text()
            assert 'kind = "external"' in text
            lock_file.write_text(text.replace('kind = "external"', "kind = { a = 1 }"))

            assert run(root, "source") == 0

            assert capsys.readouterr().out == f'source "{plugin_dir / "test.plugin.zsh"}"\n'
            assert 'kind = "external"' in lock_file.read_text()


class TestMain:
    """Test argument handling."""

    def test_no_command_prints_help(self, capsys):
        """Running without a command should print help and succeed."""
        assert main([]) == 0
        assert "usage: tpm" in capsys.readouterr().out

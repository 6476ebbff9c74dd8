"""
Tests for the Locked-State Verifier and the Stale-State Cleaner.
"""

import dataclasses
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

from tether import __version__
from tether.config.model import InlinePlugin
from tether.context import LockContext, Output, Settings, Verbosity
from tether.lock.clean import CleanWarning
from tether.lock.file import LockedConfig, LockedExternalPlugin


def make_context(root: Path) -> LockContext:
    settings = Settings(
        version=__version__,
        home=Path("/"),
        config_dir=root,
        data_dir=root,
        config_file=root / "config.toml",
        lock_file=root / "config.lock",
        clone_dir=root / "repos",
        download_dir=root / "downloads",
    )
    return LockContext(settings=settings, output=Output(Verbosity.QUIET))


def make_repo(ctx: LockContext, relative: str, files=("plugin.zsh",)) -> LockedExternalPlugin:
    directory = ctx.settings.clone_dir / relative
    directory.mkdir(parents=True, exist_ok=True)
    paths = []
    for name in files:
        path = directory / name
        path.write_text("# plugin\n")
        paths.append(path)
    return LockedExternalPlugin(
        name=Path(relative).name, source_dir=directory, files=paths, apply=["source"]
    )


class TestVerify:
    """Test LockedConfig.verify."""

    def test_verify_valid_lock(self):
        """A lock matching settings and disk should verify."""
        with tempfile.TemporaryDirectory() as tmpdir:
            ctx = make_context(Path(tmpdir))
            plugin = make_repo(ctx, "github.com/owner/repo")
            locked = LockedConfig(ctx.settings, plugins=[plugin, InlinePlugin("x", "echo")])

            assert locked.verify(ctx)

    def test_verify_fails_on_settings_drift(self):
        """Any settings change should invalidate the lock."""
        with tempfile.TemporaryDirectory() as tmpdir:
            ctx = make_context(Path(tmpdir))
            locked = LockedConfig(ctx.settings)

            for field in dataclasses.fields(Settings):
                value = getattr(ctx.settings, field.name)
                changed = value + "-other" if isinstance(value, str) else value / "other"
                drifted = dataclasses.replace(ctx.settings, **{field.name: changed})
                other = LockContext(settings=drifted, output=ctx.output)
                assert not locked.verify(other), field.name

    def test_verify_fails_on_deleted_file(self):
        """Deleting a locked file should invalidate the lock."""
        with tempfile.TemporaryDirectory() as tmpdir:
            ctx = make_context(Path(tmpdir))
            plugin = make_repo(ctx, "github.com/owner/repo", files=("a.zsh", "b.zsh"))
            locked = LockedConfig(ctx.settings, plugins=[plugin])

            plugin.files[1].unlink()

            assert not locked.verify(ctx)

    def test_verify_fails_on_missing_plugin_dir(self):
        """A missing plugin subdirectory should invalidate the lock."""
        with tempfile.TemporaryDirectory() as tmpdir:
            ctx = make_context(Path(tmpdir))
            plugin = make_repo(ctx, "github.com/owner/repo", files=())
            plugin.plugin_dir = plugin.source_dir / "missing"
            locked = LockedConfig(ctx.settings, plugins=[plugin])

            assert not locked.verify(ctx)

    def test_inline_plugins_never_invalidate(self):
        """Inline plugins have nothing on disk to check."""
        with tempfile.TemporaryDirectory() as tmpdir:
            ctx = make_context(Path(tmpdir))
            locked = LockedConfig(ctx.settings, plugins=[InlinePlugin("x", "echo x")])

            assert locked.verify(ctx)


class TestClean:
    """Test LockedConfig.clean."""

    def test_locked_config_clean(self):
        """Unreferenced clones go, referenced ones and their files stay."""
        with tempfile.TemporaryDirectory() as tmpdir:
            ctx = make_context(Path(tmpdir))
            kept = make_repo(ctx, "github.com/rossmacarthur/sheldon-test", files=("test.plugin.zsh",))
            stale = make_repo(ctx, "github.com/rossmacarthur/another-dir", files=("test.txt",))
            locked = LockedConfig(ctx.settings, plugins=[kept])

            warnings = []
            locked.clean(ctx, warnings)

            assert warnings == []
            assert kept.source_dir.exists()
            assert kept.files[0].exists()
            assert not stale.files[0].exists()
            assert not stale.source_dir.exists()
            # The owner directory still holds the kept clone.
            assert kept.source_dir.parent.exists()

    def test_clean_prunes_empty_ancestors(self):
        """Directories emptied by a removal are pruned up to the root."""
        with tempfile.TemporaryDirectory() as tmpdir:
            ctx = make_context(Path(tmpdir))
            kept = make_repo(ctx, "github.com/owner/kept")
            stale = make_repo(ctx, "gitlab.com/someone/stale")
            locked = LockedConfig(ctx.settings, plugins=[kept])

            warnings = []
            locked.clean(ctx, warnings)

            assert warnings == []
            assert not stale.source_dir.exists()
            assert not (ctx.settings.clone_dir / "gitlab.com").exists()
            assert ctx.settings.clone_dir.exists()
            assert kept.source_dir.exists()

    def test_clean_with_no_plugins_empties_root(self):
        """With nothing referenced the managed root is emptied but kept."""
        with tempfile.TemporaryDirectory() as tmpdir:
            ctx = make_context(Path(tmpdir))
            make_repo(ctx, "github.com/owner/a")
            make_repo(ctx, "github.com/owner/b")

            warnings = []
            LockedConfig(ctx.settings).clean(ctx, warnings)

            assert warnings == []
            assert ctx.settings.clone_dir.exists()
            assert list(ctx.settings.clone_dir.iterdir()) == []

    def test_clean_download_dir(self):
        """Downloaded files not referenced by any plugin are removed."""
        with tempfile.TemporaryDirectory() as tmpdir:
            ctx = make_context(Path(tmpdir))
            downloads = ctx.settings.download_dir / "example.com" / "files"
            downloads.mkdir(parents=True)
            kept = downloads / "kept.zsh"
            stale = downloads / "stale.zsh"
            kept.write_text("")
            stale.write_text("")
            other = ctx.settings.download_dir / "other.org" / "x.zsh"
            other.parent.mkdir(parents=True)
            other.write_text("")
            plugin = LockedExternalPlugin(
                name="kept", source_dir=downloads, files=[kept], apply=["source"]
            )

            warnings = []
            LockedConfig(ctx.settings, plugins=[plugin]).clean(ctx, warnings)

            assert warnings == []
            assert kept.exists()
            assert not stale.exists()
            assert not other.parent.exists()

    def test_clean_leaves_paths_outside_roots(self):
        """Local sources outside the managed roots are never touched."""
        with tempfile.TemporaryDirectory() as tmpdir:
            ctx = make_context(Path(tmpdir))
            local = Path(tmpdir) / "local"
            local.mkdir()
            (local / "x.zsh").write_text("")
            plugin = LockedExternalPlugin(name="local", source_dir=local, files=[local / "x.zsh"])

            warnings = []
            LockedConfig(ctx.settings, plugins=[plugin]).clean(ctx, warnings)

            assert warnings == []
            assert (local / "x.zsh").exists()

    def test_clean_failures_become_warnings(self):
        """A removal failure should be collected, not raised."""
        with tempfile.TemporaryDirectory() as tmpdir:
            ctx = make_context(Path(tmpdir))
            kept = make_repo(ctx, "github.com/owner/kept")
            stale = make_repo(ctx, "github.com/owner/stale")
            other = make_repo(ctx, "github.com/owner/other")
            real_rmtree = shutil.rmtree

            def fail_on_stale(path, *args, **kwargs):
                if Path(path) == stale.source_dir:
                    raise PermissionError("denied")
                return real_rmtree(path, *args, **kwargs)

            warnings = []
            with patch("tether.lock.clean.shutil.rmtree", side_effect=fail_on_stale):
                LockedConfig(ctx.settings, plugins=[kept]).clean(ctx, warnings)

            assert len(warnings) == 1
            assert isinstance(warnings[0], CleanWarning)
            assert warnings[0].path == stale.source_dir
            assert isinstance(warnings[0].__cause__, PermissionError)
            assert stale.source_dir.exists()
            assert not other.source_dir.exists()
            assert kept.source_dir.exists()

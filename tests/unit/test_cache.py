"""Unit tests for the content-addressed artifact cache."""

import pytest

from kscriptlet.cache import ArtifactCache, checksum
from kscriptlet.errors import CompileError


class TestChecksum:
    """Tests for checksum()."""

    def test_stable_and_short(self):
        assert checksum("println(1+1)") == checksum("println(1+1)")
        assert len(checksum("println(1+1)")) == 16

    def test_content_sensitive(self):
        assert checksum("println(1)") != checksum("println(2)")


class TestArtifactPath:
    """Tests for ArtifactCache.artifact_path()."""

    def test_checksum_appended(self, tmp_path):
        cache = ArtifactCache(tmp_path)
        assert cache.artifact_path("hello", "abc123") == tmp_path / "hello.abc123.jar"

    def test_checksum_not_repeated(self, tmp_path):
        """Test base names that already end with the checksum are used as-is."""
        cache = ArtifactCache(tmp_path)
        assert cache.artifact_path("scriptlet.abc123", "abc123") == tmp_path / "scriptlet.abc123.jar"


class TestInstall:
    """Tests for atomic publication through ArtifactCache.install()."""

    def test_successful_install_publishes(self, tmp_path):
        cache = ArtifactCache(tmp_path / "cache")
        artifact = cache.artifact_path("hello", "abc")

        with cache.install(artifact) as staging:
            assert staging.parent == artifact.parent
            assert staging.suffix == ".jar"
            assert not artifact.exists()
            staging.write_bytes(b"jar")

        assert artifact.read_bytes() == b"jar"
        assert cache.lookup(artifact)
        assert [p.name for p in artifact.parent.iterdir()] == ["hello.abc.jar"]

    def test_failure_leaves_nothing(self, tmp_path):
        """Test a failing build leaves neither the artifact nor the staging file."""
        cache = ArtifactCache(tmp_path / "cache")
        artifact = cache.artifact_path("hello", "abc")

        with pytest.raises(RuntimeError):
            with cache.install(artifact) as staging:
                staging.write_bytes(b"partial")
                raise RuntimeError("compiler crashed")

        assert not cache.lookup(artifact)
        assert list(artifact.parent.iterdir()) == []

    def test_no_output_is_an_error(self, tmp_path):
        cache = ArtifactCache(tmp_path / "cache")
        artifact = cache.artifact_path("hello", "abc")

        with pytest.raises(CompileError, match="produced no artifact"):
            with cache.install(artifact):
                pass

        assert not artifact.exists()

    def test_existing_artifact_replaced(self, tmp_path):
        cache = ArtifactCache(tmp_path)
        artifact = cache.artifact_path("hello", "abc")
        artifact.write_bytes(b"old")

        with cache.install(artifact) as staging:
            staging.write_bytes(b"new")

        assert artifact.read_bytes() == b"new"


class TestClear:
    """Tests for ArtifactCache.clear()."""

    def test_clear_removes_files_only_inside(self, tmp_path):
        """Test clear() is non-recursive and never touches anything outside."""
        cache_dir = tmp_path / "cache"
        cache_dir.mkdir()
        (cache_dir / "hello.abc.jar").write_bytes(b"jar")
        (cache_dir / "url_cache.def.kts").write_text("println(1)")
        nested = cache_dir / "keep"
        nested.mkdir()
        (nested / "inner.txt").write_text("keep me")
        outside = tmp_path / "outside.jar"
        outside.write_bytes(b"outside")

        deleted = ArtifactCache(cache_dir).clear()

        assert deleted == 2
        assert sorted(p.name for p in cache_dir.iterdir()) == ["keep"]
        assert (nested / "inner.txt").exists()
        assert outside.exists()

    def test_clear_missing_directory(self, tmp_path):
        assert ArtifactCache(tmp_path / "missing").clear() == 0

    def test_lookup_miss_after_clear(self, tmp_path):
        cache = ArtifactCache(tmp_path)
        artifact = cache.artifact_path("hello", "abc")
        artifact.write_bytes(b"jar")
        cache.clear()
        assert not cache.lookup(artifact)

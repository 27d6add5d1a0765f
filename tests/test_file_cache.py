# ==============================================================================
# Tests for FileCache
# ==============================================================================
"""
Tests for the local-directory cache backend.

Covers:
- JSON round trip and file naming
- Missing keys, corrupted files and deletes
- Health check on a usable and an unusable directory
- Running the analytics stores on top of it
"""

import pytest

from conftest import make_session

from wikipulse.base.cache import CacheError, CorruptValueError
from wikipulse.infrastructure.cache import FileCache
from wikipulse.infrastructure.stores import AnalyticsStore


class TestFileCache:
    """Tests for FileCache get/set/delete/ping."""

    def test_round_trip(self, file_cache):
        file_cache.set("wikipulse:events", [{"id": "e1"}])
        assert file_cache.get("wikipulse:events") == [{"id": "e1"}]

    def test_key_maps_to_json_file(self, file_cache):
        """Colons in keys become dashes in file names."""
        file_cache.set("wikipulse:user-id", "user_a")
        assert (file_cache.data_dir / "wikipulse-user-id.json").exists()

    def test_missing_key_returns_none(self, file_cache):
        assert file_cache.get("wikipulse:nothing") is None

    def test_corrupted_file_raises_corrupt_value(self, file_cache):
        file_cache.data_dir.mkdir(parents=True)
        (file_cache.data_dir / "wikipulse-events.json").write_text("[{broken")
        with pytest.raises(CorruptValueError):
            file_cache.get("wikipulse:events")

    def test_unserializable_value_raises_cache_error(self, file_cache):
        with pytest.raises(CacheError):
            file_cache.set("wikipulse:events", {"when": object()})

    def test_delete(self, file_cache):
        file_cache.set("wikipulse:consent", {"granted": True})
        assert file_cache.delete("wikipulse:consent") is True
        assert file_cache.delete("wikipulse:consent") is False
        assert file_cache.get("wikipulse:consent") is None

    def test_no_temp_files_left_behind(self, file_cache):
        file_cache.set("wikipulse:events", [])
        assert [p.name for p in file_cache.data_dir.iterdir()] == ["wikipulse-events.json"]

    def test_ping_creates_directory(self, file_cache):
        assert not file_cache.data_dir.exists()
        assert file_cache.ping() is True
        assert file_cache.data_dir.is_dir()

    def test_ping_fails_when_path_is_a_file(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        assert FileCache(blocker / "data").ping() is False

    def test_write_failure_raises_cache_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        with pytest.raises(CacheError):
            FileCache(blocker / "data").set("wikipulse:events", [])


class TestStoresOnFiles:
    """The analytics stores behave the same on the file backend."""

    def test_sessions_persist_across_instances(self, tmp_path):
        first = AnalyticsStore(FileCache(tmp_path), max_sessions=2)
        for i in range(3):
            first.sessions.append(make_session(f"s{i}"))

        second = AnalyticsStore(FileCache(tmp_path), max_sessions=2)
        assert [s.session_id for s in second.sessions.load_all()] == ["s2", "s1"]

    def test_corrupted_file_loads_empty(self, tmp_path):
        (tmp_path / "wikipulse-sessions.json").write_text("garbage")
        store = AnalyticsStore(FileCache(tmp_path))
        assert store.sessions.load_all() == []

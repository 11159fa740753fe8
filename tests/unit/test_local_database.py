# =============================================================================
# tests/unit/test_local_database.py
# Unit Tests for the SQLite Local Cache
# =============================================================================

import pytest


class TestDatasetSlot:
    """Test the cached dataset document"""

    def test_empty_cache_reads_as_empty_dataset(self, local_db):
        """Absent slot means no data"""
        assert len(local_db.read_dataset()) == 0

    def test_write_then_read(self, local_db, sample_dataset):
        assert local_db.write_dataset(sample_dataset) is True

        cached = local_db.read_dataset()

        assert cached == sample_dataset

    def test_corrupt_slot_reads_as_empty(self, local_db):
        """Unparseable JSON never raises"""
        local_db.set_setting(local_db.DATASET_KEY, "{not json")

        assert len(local_db.read_dataset()) == 0

    def test_wrong_shape_reads_as_empty(self, local_db):
        """Valid JSON that is not a hospital list is treated as absent"""
        local_db.set_setting(local_db.DATASET_KEY, {"hospitals": "x"})

        assert len(local_db.read_dataset()) == 0

    def test_persian_text_survives(self, local_db, sample_dataset):
        local_db.write_dataset(sample_dataset)

        raw = local_db.get_setting(local_db.DATASET_KEY, parse=False)

        assert "فروردین" in raw

    def test_data_survives_reopen(self, tmp_path, sample_dataset):
        """A new handle on the same file sees the cached dataset"""
        from skill_core.offline import LocalDatabase

        path = tmp_path / "cache.db"
        first = LocalDatabase(path)
        first.write_dataset(sample_dataset)
        first.close()

        second = LocalDatabase(path)
        try:
            assert second.read_dataset().hospital_ids() == ["H1", "H2"]
        finally:
            second.close()


class TestBlobStore:
    """Test the local file blob table"""

    def test_blob_use_before_initialize_fails(self, local_db):
        from skill_core.errors import LocalCacheError

        with pytest.raises(LocalCacheError):
            local_db.put_blob("a", b"x")

    def test_initialize_is_idempotent(self, local_db):
        local_db.initialize()
        local_db.initialize()

        assert local_db.initialized

    def test_put_get_delete(self, local_db):
        local_db.initialize()
        local_db.put_blob("public/1-a.pdf", b"%PDF")

        assert local_db.get_blob("public/1-a.pdf") == b"%PDF"
        assert local_db.delete_blob("public/1-a.pdf") is True
        assert local_db.get_blob("public/1-a.pdf") is None
        assert local_db.delete_blob("public/1-a.pdf") is False

    def test_put_replaces(self, local_db):
        local_db.initialize()
        local_db.put_blob("k", b"one")
        local_db.put_blob("k", b"two")

        assert local_db.list_blobs() == [("k", b"two")]

    def test_clear_blobs(self, local_db):
        local_db.initialize()
        local_db.put_blob("a", b"1")
        local_db.put_blob("b", b"2")

        assert local_db.clear_blobs() == 2
        assert local_db.list_blobs() == []


class TestSettings:
    """Test app settings"""

    def test_missing_setting_returns_default(self, local_db):
        assert local_db.get_setting("active_year", default=1400) == 1400

    def test_json_values_are_decoded(self, local_db):
        local_db.set_setting("active_year", 1403)

        assert local_db.get_setting("active_year") == 1403

    def test_plain_strings_stay_strings(self, local_db):
        local_db.set_setting("theme", "dark")

        assert local_db.get_setting("theme") == "dark"

    def test_in_memory_database(self):
        from skill_core.offline import LocalDatabase

        db = LocalDatabase(":memory:")
        db.initialize()
        db.set_setting("k", [1, 2])

        assert db.get_setting("k") == [1, 2]
        db.close()

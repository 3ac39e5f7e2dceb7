"""Test manifest — ZuppaClaude."""
from __future__ import annotations

import json
from datetime import datetime

import pytest

from zuppaclaude.errors import ManifestError
from zuppaclaude.manifest import (
    BackupManifest,
    HistoryEntry,
    ProjectEntry,
    SessionEntry,
    backup_sort_key,
    load_json,
    mint_backup_id,
    parse_backup_id,
    read_manifest,
    save_json,
    write_manifest,
)


# ===================================================================
# Backup ids
# ===================================================================

class TestBackupIds:
    """Minting and ordering of timestamp ids."""

    @pytest.mark.unit
    def test_mint_uses_sortable_format(self):
        bid = mint_backup_id(lambda _: False, now=datetime(2026, 1, 5, 13, 56))
        assert bid == "2026-01-05-13.56"

    @pytest.mark.unit
    def test_mint_suffixes_collisions(self):
        taken = {"2026-01-05-13.56", "2026-01-05-13.56-2"}
        bid = mint_backup_id(taken.__contains__, now=datetime(2026, 1, 5, 13, 56))
        assert bid == "2026-01-05-13.56-3"

    @pytest.mark.unit
    def test_new_ids_sort_lexically_in_time_order(self):
        stamps = [datetime(2026, 2, 1, 9, 5), datetime(2026, 1, 2, 23, 59), datetime(2026, 1, 1, 0, 0)]
        ids = [mint_backup_id(lambda _: False, now=s) for s in stamps]
        assert sorted(ids, reverse=True) == ids

    @pytest.mark.unit
    def test_legacy_month_names_sort_chronologically(self):
        ids = ["Jan-01-2026-10.00", "Feb-01-2026-10.00", "Jan-02-2026-10.00"]
        ordered = sorted(ids, key=backup_sort_key, reverse=True)
        assert ordered == ["Feb-01-2026-10.00", "Jan-02-2026-10.00", "Jan-01-2026-10.00"]

    @pytest.mark.unit
    def test_mixed_formats_and_sequence(self):
        ids = [
            "2026-01-05-13.56",
            "2026-01-05-13.56-2",
            "2026-01-04T12-00-00",
            "Jan-06-2026-08.00",
            "not-a-backup",
        ]
        ordered = sorted(ids, key=backup_sort_key, reverse=True)
        assert ordered == [
            "Jan-06-2026-08.00",
            "2026-01-05-13.56-2",
            "2026-01-05-13.56",
            "2026-01-04T12-00-00",
            "not-a-backup",
        ]

    @pytest.mark.unit
    def test_parse_unknown_returns_none(self):
        assert parse_backup_id("random") is None
        assert parse_backup_id("2026-01-05-13.56") == (datetime(2026, 1, 5, 13, 56), 1)


# ===================================================================
# JSON helpers
# ===================================================================

class TestJsonHelpers:

    @pytest.mark.unit
    def test_save_json_is_atomic_and_readable(self, tmp_path):
        path = tmp_path / "nested" / "data.json"
        save_json(path, {"a": 1})
        assert load_json(path) == {"a": 1}
        assert not (tmp_path / "nested" / "data.json.tmp").exists()

    @pytest.mark.unit
    def test_save_json_applies_mode(self, tmp_path):
        path = tmp_path / "secret.json"
        save_json(path, {}, mode=0o600)
        assert path.stat().st_mode & 0o777 == 0o600

    @pytest.mark.unit
    def test_load_json_default_on_corrupt(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_json(path, default="fallback") == "fallback"
        assert load_json(tmp_path / "missing.json", default=[]) == []


# ===================================================================
# BackupManifest
# ===================================================================

def _manifest() -> BackupManifest:
    return BackupManifest(
        backup_id="2026-01-05-13.56",
        created_at="2026-01-05T13:56:00+00:00",
        version="1.3.0",
        hostname="test-host",
        username="tester",
        projects=[
            ProjectEntry(id="-Users-dev-alpha", path="Users/dev/alpha", sessions=[
                SessionEntry(id="a", file="a.jsonl", size=10, modified="2026-01-05T13:00:00+00:00"),
                SessionEntry(id="agent-b", file="agent-b.jsonl", size=5,
                             modified="2026-01-05T13:00:00+00:00", type="agent"),
            ]),
        ],
        history=HistoryEntry(size=3, modified="2026-01-05T13:00:00+00:00"),
    )


class TestBackupManifest:
    """Serialization and the on-disk completion marker."""

    @pytest.mark.unit
    def test_counts(self):
        m = _manifest()
        assert m.session_count == 2
        assert m.total_size == 18

    @pytest.mark.unit
    def test_write_then_read(self, tmp_path):
        write_manifest(tmp_path, _manifest())
        raw = json.loads((tmp_path / "manifest.json").read_text(encoding="utf-8"))
        assert raw["backup_type"] == "sessions"
        assert raw["projects"][0]["sessions"][1]["type"] == "agent"
        loaded = read_manifest(tmp_path)
        assert loaded == _manifest()

    @pytest.mark.unit
    def test_legacy_keys_accepted(self, tmp_path):
        legacy = {
            "timestamp": "Jan-05-2026-13.56",
            "timestampISO": "2026-01-05T13:56:00.000Z",
            "version": "1.2.0",
            "hostname": "old-host",
            "backupType": "full",
            "projects": [{"id": "p", "sessions": [{"file": "s1.jsonl", "size": 4}]}],
            "history": None,
        }
        (tmp_path / "manifest.json").write_text(json.dumps(legacy), encoding="utf-8")
        m = read_manifest(tmp_path)
        assert m.backup_id == "Jan-05-2026-13.56"
        assert m.backup_type == "full"
        assert m.projects[0].sessions[0].id == "s1"
        assert m.history is None

    @pytest.mark.unit
    def test_missing_manifest_raises(self, tmp_path):
        with pytest.raises(ManifestError):
            read_manifest(tmp_path)

    @pytest.mark.unit
    def test_malformed_manifest_raises(self, tmp_path):
        (tmp_path / "manifest.json").write_text('["not", "an", "object"]', encoding="utf-8")
        with pytest.raises(ManifestError) as exc_info:
            read_manifest(tmp_path)
        assert "cannot read" in exc_info.value.message

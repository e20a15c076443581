"""
Tests for configuration loading.
"""

from pathlib import Path

import pytest
import yaml

from groupavail.config import AppConfig


def _write(tmp_path: Path, data) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


MEMBERS = [
    {"name": "alice", "person_id": "alice@example.com", "calendar_id": "cal-alice"},
    {"name": "bob", "person_id": "bob@example.com"},
]


class TestAppConfig:
    """Tests for AppConfig."""

    def test_defaults(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, {}))

        assert config.defaults.resolution_minutes == 15
        assert config.defaults.done_early_minutes == 60
        assert config.presence.backend == "memory"
        assert config.calendar.source == "mock"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "nope.yaml")

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")

        with pytest.raises(ValueError, match="mapping"):
            AppConfig.load_from_yaml(path)

    def test_duplicate_member_names(self, tmp_path):
        members = MEMBERS + [{"name": "Alice", "person_id": "other@example.com"}]

        with pytest.raises(ValueError, match="Duplicate member name"):
            AppConfig.load_from_yaml(_write(tmp_path, {"members": members}))

    def test_non_positive_resolution(self, tmp_path):
        with pytest.raises(ValueError):
            AppConfig.load_from_yaml(_write(tmp_path, {"defaults": {"resolution_minutes": 0}}))

    def test_graph_source_needs_token(self, tmp_path):
        with pytest.raises(ValueError, match="graph_access_token"):
            AppConfig.load_from_yaml(_write(tmp_path, {"calendar": {"source": "graph"}}))

    def test_relative_mock_file_resolved_next_to_config(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, {"calendar": {"mock_data_file": "cal.json"}}))
        assert config.calendar.mock_data_file == tmp_path / "cal.json"


class TestPersonResolution:
    """Tests for resolving names and ids."""

    def test_resolve_by_name_or_id(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, {"members": MEMBERS}))

        assert config.resolve_person("ALICE") == "alice@example.com"
        assert config.resolve_person("bob@example.com") == "bob@example.com"

    def test_resolve_people_deduplicates(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, {"members": MEMBERS}))

        assert config.resolve_people(["alice", "alice@example.com", "bob"]) == [
            "alice@example.com",
            "bob@example.com",
        ]

    def test_resolve_people_reports_all_unknown(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, {"members": MEMBERS}))

        with pytest.raises(ValueError, match="dave, zoe"):
            config.resolve_people(["zoe", "alice", "dave"])

    def test_empty_selection_means_everybody(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, {"members": MEMBERS}))

        assert config.resolve_people([]) == ["alice@example.com", "bob@example.com"]
        assert config.calendar_ids() == {"alice@example.com": "cal-alice"}

    def test_display_names_and_calendar_ids(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, {"members": MEMBERS}))

        assert config.display_names() == {"alice@example.com": "alice", "bob@example.com": "bob"}
        assert config.calendar_ids() == {"alice@example.com": "cal-alice"}

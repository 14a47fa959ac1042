"""
Report rendering tests.
"""

import json

from conftest import make_state
from migration_tracker import MigrationTracker
from migrator import Migrator
from migration_registry import discover_migrations
from report_writer import MigrationReportWriter


class TestReportWriter:
    def test_text_report_lists_passes(self, migrations_dir):
        state = make_state(version="1.0.2", player_version="1.0.2")
        state["players"]["2"] = {"factory": None}
        report = Migrator(discover_migrations(migrations_dir), "1.1.0").migrate_save(state, source="save.json")

        text = MigrationReportWriter().generate_text_report(report)
        assert "Source: save.json" in text
        assert "[global] 1.0.2 -> 1.1.0" in text
        assert "Steps: migration_1_0_5, migration_1_1_0" in text
        assert "[player 2] new installation, stamped 1.1.0" in text

    def test_change_details_from_tracker(self, migrations_dir):
        tracker = MigrationTracker(track_changes=True)
        state = {"mod_version": "0.18.0"}
        report = Migrator(discover_migrations(migrations_dir), "1.1.0", tracker).migrate_save(state)

        text = MigrationReportWriter().generate_text_report(report, tracker)
        assert "global global: migration_1_0_0 [1.0.0] (continue) [+preferences]" in text

    def test_save_reports_without_tracker(self, migrations_dir, tmp_path):
        state = {"mod_version": "1.0.0"}
        report = Migrator(discover_migrations(migrations_dir), "1.1.0").migrate_save(state)

        outputs = MigrationReportWriter().save_reports(report, tmp_path / "reports")
        assert set(outputs) == {"text_report", "json_report"}
        data = json.loads(outputs["json_report"].read_text(encoding="utf-8"))
        assert data["total_steps_applied"] == 2
        assert "tracking" not in data

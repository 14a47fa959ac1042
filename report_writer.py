#!/usr/bin/env python3
"""
Report Writer
Generates text and JSON reports of a migration run
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from data_models import MigrationReport
from migration_tracker import MigrationTracker

class MigrationReportWriter:
    """Creates readable summaries of what a migration did"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def generate_text_report(self, report: MigrationReport,
                             tracker: Optional[MigrationTracker] = None) -> str:
        lines = []

        lines.append("FACTORY PLANNER SAVE MIGRATION REPORT")
        lines.append("=" * 70)
        lines.append(f"Source: {report.source}")
        lines.append(f"Started: {report.started_at}")
        lines.append(f"Target Mod Version: {report.mod_version}")
        lines.append("")

        lines.append("SUMMARY")
        lines.append("-" * 30)
        lines.append(f"Passes: {len(report.passes)}")
        lines.append(f"Migration Steps Applied: {report.total_steps_applied}")
        lines.append(f"Objects Removed: {report.total_removed}")
        lines.append("")

        for pass_report in report.passes:
            if pass_report.new_installation:
                lines.append(f"[{pass_report.label}] new installation, stamped {pass_report.new_version}")
                continue

            lines.append(f"[{pass_report.label}] {pass_report.previous_version} -> {pass_report.new_version}")
            if pass_report.steps:
                lines.append(f"  Steps: {', '.join(pass_report.steps)}")
            else:
                lines.append("  Steps: none")
            lines.append(f"  Objects migrated: {pass_report.objects_migrated}")
            if pass_report.objects_removed:
                lines.append(f"  Objects removed: {pass_report.objects_removed}")

        if tracker and tracker.histories:
            lines.append("")
            lines.append("CHANGES")
            lines.append("-" * 30)
            for history in tracker.histories.values():
                for record in history.records:
                    changes = self._describe_changes(record.added_keys, record.removed_keys, record.changed_keys)
                    lines.append(f"{history.target_kind.value} {history.target_label}: "
                                 f"{record.step_name} [{record.version}] ({record.outcome.value}){changes}")

        return "\n".join(lines) + "\n"

    def _describe_changes(self, added: List[str], removed: List[str], changed: List[str]) -> str:
        parts = []
        if added:
            parts.append(f"+{','.join(added)}")
        if removed:
            parts.append(f"-{','.join(removed)}")
        if changed:
            parts.append(f"~{','.join(changed)}")
        return f" [{' '.join(parts)}]" if parts else ""

    def save_reports(self, report: MigrationReport, output_dir: Path,
                     tracker: Optional[MigrationTracker] = None) -> Dict[str, Path]:
        """Write migration_report.txt and migration_report.json (plus history if tracked)"""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        outputs = {}

        text_path = output_dir / "migration_report.txt"
        with open(text_path, 'w', encoding='utf-8') as f:
            f.write(self.generate_text_report(report, tracker))
        outputs['text_report'] = text_path

        json_path = output_dir / "migration_report.json"
        data = report.to_dict()
        if tracker:
            data['tracking'] = tracker.generate_report()
        with open(json_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        outputs['json_report'] = json_path

        if tracker:
            history_path = output_dir / "migration_history.json"
            tracker.export_history(history_path)
            outputs['history'] = history_path

        self.logger.info(f"Saved migration reports to {output_dir}")
        return outputs

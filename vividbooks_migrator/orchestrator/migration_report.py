"""
Migration report generator for run statistics and per-item statuses.

Reports are formatted for console display and exported as JSON.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models import ImportState, ImportStatus


class MigrationReport:
    """Builds the end-of-run summary from the orchestrator's stats and status rows."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('vividbooks_migrator.report')

    def generate_report(self, stats: Dict[str, Any], statuses: List[ImportStatus]) -> Dict[str, Any]:
        """
        Generate migration report.

        Args:
            stats: Statistics returned by ``MigrationOrchestrator.run``
            statuses: Per-item status rows of the run

        Returns:
            Migration report dictionary
        """
        report = {
            'summary': self._build_summary(stats, statuses),
            'items': [status.to_dict() for status in statuses],
            'errors': list(stats.get('errors', [])),
            'warnings': list(stats.get('warnings', [])),
            'timestamp': datetime.now().isoformat()
        }
        self.logger.info(
            f"Report generated: {report['summary']['items']} items, "
            f"{report['summary']['total_errors']} errors"
        )
        return report

    def _build_summary(self, stats: Dict[str, Any], statuses: List[ImportStatus]) -> Dict[str, Any]:
        by_type: Dict[str, Dict[str, int]] = {}
        for status in statuses:
            counts = by_type.setdefault(status.type, {state.value: 0 for state in ImportState})
            counts[status.status.value] += 1

        succeeded = stats.get('succeeded', 0)
        failed = stats.get('failed', 0)
        duration = stats.get('duration_seconds', 0.0)
        attempted = succeeded + failed
        return {
            'category': stats.get('category'),
            'books_requested': stats.get('books_requested', 0),
            'books_fetched': stats.get('books_fetched', 0),
            'items': len(statuses),
            'succeeded': succeeded,
            'failed': failed,
            'already_existed': stats.get('already_existed', 0),
            'texts_created': stats.get('texts_created', 0),
            'menu_items': stats.get('menu_items', 0),
            'boards_rewritten': stats.get('boards_rewritten', 0),
            'menu_updated': stats.get('menu_updated', False),
            'destination_found': stats.get('destination_found'),
            'rehosting': stats.get('rehosting', {}),
            'by_type': by_type,
            'success_rate': (succeeded / attempted) if attempted else 0.0,
            'total_errors': len(stats.get('errors', [])),
            'total_warnings': len(stats.get('warnings', [])),
            'duration_seconds': duration,
            'duration_formatted': self._format_duration(duration)
        }

    def _format_duration(self, seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            minutes = int(seconds // 60)
            secs = int(seconds % 60)
            return f"{minutes}m {secs}s"
        else:
            hours = int(seconds // 3600)
            minutes = int((seconds % 3600) // 60)
            secs = int(seconds % 60)
            return f"{hours}h {minutes}m {secs}s"

    def format_console_report(self, report: Dict[str, Any]) -> str:
        """
        Format report for console display.

        Args:
            report: Migration report dictionary

        Returns:
            Formatted console string
        """
        sections = []

        sections.append("=" * 60)
        sections.append("MIGRATION REPORT")
        sections.append("=" * 60)
        sections.append("")

        summary = report.get('summary', {})
        sections.append("Summary:")
        sections.append(f"  Category:    {summary.get('category', 'unknown')}")
        sections.append(f"  Books:       {summary.get('books_fetched', 0)}/{summary.get('books_requested', 0)} fetched")
        sections.append(f"  Items:       {summary.get('items', 0)}")
        sections.append(f"  Succeeded:   {summary.get('succeeded', 0)}")
        if summary.get('already_existed'):
            sections.append(f"    (already existed: {summary['already_existed']})")
        sections.append(f"  Failed:      {summary.get('failed', 0)}")
        sections.append(f"  Texts:       {summary.get('texts_created', 0)}")
        sections.append(f"  Duration:    {summary.get('duration_formatted', '0s')}")
        sections.append(f"  Success:     {summary.get('success_rate', 0) * 100:.1f}%")
        sections.append("")

        sections.append("Menu:")
        sections.append("-" * 60)
        sections.append(f"  Items added: {summary.get('menu_items', 0)}")
        sections.append(f"  Boards:      {summary.get('boards_rewritten', 0)} rewritten")
        sections.append(f"  Updated:     {'yes' if summary.get('menu_updated') else 'NO'}")
        if summary.get('destination_found') is False:
            sections.append("  WARNING:     destination not found, items added to root")
        sections.append("")

        rehosting = summary.get('rehosting') or {}
        if rehosting:
            sections.append("Assets:")
            sections.append("-" * 60)
            sections.append(
                f"  Rehosted: {rehosting.get('rehosted', 0)}, "
                f"kept original: {rehosting.get('failed', 0)}, "
                f"already on platform: {rehosting.get('skipped', 0)}, "
                f"thumbnails: {rehosting.get('thumbnails', 0)}"
            )
            sections.append("")

        errors = report.get('errors', [])
        if errors:
            sections.append("Error Summary:")
            sections.append(f"  Total errors: {len(errors)}")
            for error in errors:
                label = error.get('item_name') or error.get('phase', 'unknown')
                sections.append(f"  [{error.get('phase', 'unknown')}] {label}: {error.get('error')}")
            sections.append("")

        warnings = report.get('warnings', [])
        if warnings:
            sections.append(f"Warnings: {len(warnings)} (see log for details)")
            sections.append("")

        sections.append("=" * 60)
        return "\n".join(sections)

    def export_json_report(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export report to JSON file.

        Raises:
            OSError: If the file cannot be written
        """
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(report, f, indent=2, ensure_ascii=False, default=str)
        self.logger.info(f"JSON report exported to {filepath}")


__all__ = ['MigrationReport']

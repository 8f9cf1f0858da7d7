"""
Orchestration package for coordinating an import run.

The orchestrator sequences the run phases: Confirm → Authenticate → Fetch →
Lessons → Worksheets → Boards → Menu merge → Report.
"""

from .migration_orchestrator import MigrationOrchestrator, ImportInProgressError, collect_selection
from .migration_report import MigrationReport

__all__ = [
    'MigrationOrchestrator',
    'ImportInProgressError',
    'collect_selection',
    'MigrationReport'
]

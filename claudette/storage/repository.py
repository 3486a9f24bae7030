"""
Repository pattern for usage data access.

Wires source enumeration, the streaming reader and the segmentation and
aggregation engines into the load operations used by the CLI.
"""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Sequence, Union

from claudette.core.aggregation import GroupBy, aggregate_by_day, group_usage
from claudette.core.fingerprint import FingerprintCache
from claudette.core.reader import read_sources
from claudette.core.sessions import DEFAULT_SESSION_DURATION, identify_session_blocks
from .models import (
    DailyUsage,
    GroupedUsage,
    Project,
    ProjectNotFoundError,
    SessionBlock,
    SourceUnavailableError,
    UsageEvent,
)
from .sources import DEFAULT_PROJECT_ROOTS, iter_sources, list_projects

logger = logging.getLogger(__name__)


def _sort_events(events: List[UsageEvent]) -> List[UsageEvent]:
    events.sort(key=lambda e: e.timestamp)
    return events


class UsageRepository:
    """Repository for loading usage from assistant log directories.

    Every load is a fresh, synchronous scan of the log files; nothing is
    cached between calls.
    """

    def __init__(self, roots: Optional[Sequence[Union[str, Path]]] = None):
        """Initialize the repository with the project roots to scan.

        Args:
            roots: Directories containing one subdirectory per project;
                defaults to DEFAULT_PROJECT_ROOTS
        """
        self.roots = tuple(Path(r).expanduser() for r in (roots or DEFAULT_PROJECT_ROOTS))

    def list_projects(self) -> List[Project]:
        """List projects under the configured roots, sorted by name."""
        return list_projects(self.roots)

    def find_project(self, name: str) -> Project:
        """Look up a project by name.

        Raises:
            ProjectNotFoundError: If no project has that name
        """
        for project in self.list_projects():
            if project.name == name:
                return project
        raise ProjectNotFoundError(name)

    def load_project_events(
        self,
        project: Project,
        cache: Optional[FingerprintCache] = None,
    ) -> List[UsageEvent]:
        """Load the deduplicated events of one project, oldest first.

        Args:
            project: Project to scan
            cache: Fingerprint cache to share with other scans; a fresh one
                is used when omitted

        Raises:
            SourceUnavailableError: If the project directory does not exist
        """
        if not Path(project.path).is_dir():
            raise SourceUnavailableError(str(project.path), "not a directory")
        if cache is None:
            cache = FingerprintCache()

        events = read_sources(iter_sources([project]), cache)
        logger.debug("Loaded %d events from project %s", len(events), project.name)
        return _sort_events(events)

    def load_all_events(self) -> List[UsageEvent]:
        """Load events across all projects with one shared fingerprint cache.

        The same record logged under two projects counts once. Projects that
        cannot be read are skipped.
        """
        cache = FingerprintCache()
        events: List[UsageEvent] = []
        for project in self.list_projects():
            try:
                events.extend(self.load_project_events(project, cache))
            except SourceUnavailableError as e:
                logger.warning("Skipping project %s: %s", project.name, e)

        logger.info("Loaded %d unique events", len(events))
        return _sort_events(events)

    def _events_for(self, project: Optional[Project]) -> List[UsageEvent]:
        if project is None:
            return self.load_all_events()
        return self.load_project_events(project)

    def load_session_blocks(
        self,
        project: Project,
        session_duration: timedelta = DEFAULT_SESSION_DURATION,
        now: Optional[datetime] = None,
    ) -> List[SessionBlock]:
        """Segment one project's events into session blocks."""
        events = self.load_project_events(project)
        return identify_session_blocks(events, session_duration, now)

    def load_all_session_blocks(
        self,
        session_duration: timedelta = DEFAULT_SESSION_DURATION,
        now: Optional[datetime] = None,
    ) -> List[SessionBlock]:
        """Segment the events of all projects into one block timeline."""
        events = self.load_all_events()
        return identify_session_blocks(events, session_duration, now)

    def load_daily_usage(self, project: Optional[Project] = None) -> List[DailyUsage]:
        """Aggregate usage by calendar day, for one project or all of them."""
        return aggregate_by_day(self._events_for(project))

    def load_grouped_usage(
        self,
        group_by: Union[GroupBy, str] = GroupBy.DAY,
        project: Optional[Project] = None,
    ) -> List[GroupedUsage]:
        """Aggregate usage by period or project, for one project or all."""
        return group_usage(self._events_for(project), group_by)


# Global repository instance
_default_repository: Optional[UsageRepository] = None


def get_repository(roots: Optional[Sequence[Union[str, Path]]] = None) -> UsageRepository:
    """Get a repository instance.

    Returns a process-wide default when called without roots; explicit
    roots always build a new repository.
    """
    global _default_repository
    if roots is not None:
        return UsageRepository(roots)
    if _default_repository is None:
        _default_repository = UsageRepository()
    return _default_repository

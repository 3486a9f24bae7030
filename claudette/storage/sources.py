"""
Log source enumeration.

Lists project directories under the known roots and the JSONL files inside
them.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .models import Project

logger = logging.getLogger(__name__)

LOG_SUFFIX = ".jsonl"

DEFAULT_PROJECT_ROOTS: Tuple[Path, ...] = (
    Path.home() / ".claude" / "projects",
    Path.home() / ".config" / "claude" / "projects",
)


def project_name_from_path(dir_name: str) -> str:
    """Derive a project name from its log directory name.

    Directory names encode the working directory with dashes, so the last
    segment is the project's own directory name.
    """
    return dir_name.split("-")[-1]


def list_projects(roots: Optional[Sequence[Union[str, Path]]] = None) -> List[Project]:
    """Find all project directories under the given roots.

    Args:
        roots: Directories to scan; defaults to DEFAULT_PROJECT_ROOTS

    Returns:
        Projects sorted by name. When two directories map to the same name
        the first one found wins. Missing roots are skipped.
    """
    if roots is None:
        roots = DEFAULT_PROJECT_ROOTS

    projects: List[Project] = []
    seen = set()
    for root in roots:
        root_path = Path(root).expanduser()
        try:
            entries = sorted(root_path.iterdir())
        except OSError:
            logger.debug("Project root %s not readable, skipping", root_path)
            continue

        for entry in entries:
            if not entry.is_dir():
                continue
            name = project_name_from_path(entry.name)
            if name in seen:
                continue
            seen.add(name)
            projects.append(Project(name=name, path=entry))

    projects.sort(key=lambda p: p.name)
    return projects


def iter_log_files(project_path: Union[str, Path]) -> Iterator[Path]:
    """Yield every JSONL file below a project directory, in sorted order.

    Subdirectories that cannot be listed are skipped.
    """
    def _on_error(error: OSError) -> None:
        logger.debug("Cannot list %s: %s", error.filename, error.strerror)

    for dirpath, dirnames, filenames in os.walk(project_path, onerror=_on_error):
        dirnames.sort()
        for filename in sorted(filenames):
            if filename.endswith(LOG_SUFFIX):
                yield Path(dirpath) / filename


def iter_sources(projects: Iterable[Project]) -> Iterator[Tuple[str, Path]]:
    """Yield (project name, log file) pairs for the given projects."""
    for project in projects:
        for path in iter_log_files(project.path):
            yield project.name, path

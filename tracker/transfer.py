"""
Export and import of the whole project collection.

Export document:  {"projects": [...], "exportDate": "<ISO timestamp>"}

Import accepts the same document (only "projects" is required). The document
is fully parsed before anything is replaced, so a bad file leaves both memory
and the persisted collection untouched.
"""
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from .schema import Project, utc_now
from .projects import ProjectRepository

logger = logging.getLogger(__name__)


class MalformedImport(Exception):
    """Raised when an import document cannot be parsed or has the wrong shape."""
    pass


def export_document(projects: List[Project], now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utc_now()
    return {
        "projects": [p.to_dict() for p in projects],
        "exportDate": now.isoformat(),
    }


def export_filename(now: Optional[datetime] = None) -> str:
    now = now or utc_now()
    return f"project-data-{int(now.timestamp() * 1000)}.json"


def parse_import(raw: Union[str, bytes, Dict[str, Any]]) -> List[Project]:
    """Decode and validate an import document into Projects."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedImport(f"Not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise MalformedImport("Import document must be a JSON object")
    items = raw.get("projects")
    if not isinstance(items, list):
        raise MalformedImport("Import document has no 'projects' list")

    projects = []
    for index, item in enumerate(items):
        try:
            projects.append(Project.from_dict(item))
        except KeyError as e:
            raise MalformedImport(f"Project #{index} is missing field {e}") from e
        except (TypeError, ValueError) as e:
            raise MalformedImport(f"Project #{index} is invalid: {e}") from e
    return projects


def import_document(repository: ProjectRepository, raw: Union[str, bytes, Dict[str, Any]]) -> int:
    """Replace the repository's collection with the imported one."""
    try:
        projects = parse_import(raw)
    except MalformedImport as e:
        logger.warning(f"Import rejected: {e}")
        raise
    repository.replace_all(projects)
    return len(projects)

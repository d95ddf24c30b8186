"""
Project repository.

Owns the in-memory project collection (tasks nested inside), loaded once from
the key-value store and rewritten as a whole after every mutation.
"""
import copy
import logging
from typing import List, Optional, Dict, Any, Iterable

from .schema import Project, ProjectStatus, Priority, make_id, parse_date
from .storage import KeyValueStore, DebouncedWriter, StorageError
from .results import Updated, NotFound, Result

logger = logging.getLogger(__name__)

DEFAULT_KEY = "projects"


class ProjectRepository:
    """CRUD and aggregate queries over projects."""

    def __init__(
        self,
        store: KeyValueStore,
        key: str = DEFAULT_KEY,
        writer: Optional[DebouncedWriter] = None,
    ):
        """Initialize with a store and load the persisted collection."""
        self.store = store
        self.key = key
        self.writer = writer
        self.projects: List[Project] = self._load()

    def _load(self) -> List[Project]:
        data = self.store.load(self.key)
        if not data:
            return []
        if not isinstance(data, list):
            logger.error(f"Ignoring stored {self.key!r}: expected a list, got {type(data).__name__}")
            return []
        projects = []
        for item in data:
            try:
                projects.append(Project.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Skipping unreadable project record: {e}")
        logger.info(f"Loaded {len(projects)} projects from {self.store.db_path}")
        return projects

    def reload(self) -> None:
        """Discard memory and read the persisted collection again."""
        self.projects = self._load()

    def snapshot(self) -> List[Project]:
        """Detached copy of the collection, for restoring after a failed save."""
        return copy.deepcopy(self.projects)

    def save(self, rollback: Optional[List[Project]] = None) -> None:
        """
        Persist the full collection (debounced when a writer is set).

        If the write fails and a rollback snapshot is given, memory is reset
        to it before the StorageError propagates.
        """
        payload = [p.to_dict() for p in self.projects]
        try:
            if self.writer is not None:
                self.writer.schedule(self.key, payload)
            else:
                self.store.save(self.key, payload)
        except StorageError:
            if rollback is not None:
                self.projects = rollback
                logger.warning(f"Save failed, restored {len(rollback)} projects in memory")
            raise

    def flush(self) -> None:
        """Force out any debounced write."""
        if self.writer is not None:
            self.writer.flush()

    # ── CRUD ────────────────────────────────────────────────────────────────

    def create(
        self,
        name: str,
        description: str = "",
        status: str = ProjectStatus.ACTIVE.value,
        priority: str = Priority.MEDIUM.value,
        deadline: Any = None,
    ) -> Project:
        """Create a project with no tasks, append it and persist."""
        project = Project(
            id=make_id("proj"),
            name=name,
            description=description or "",
            status=status,
            priority=priority,
            deadline=parse_date(deadline),
        )
        before = self.snapshot()
        self.projects.append(project)
        self.save(rollback=before)
        logger.info(f"Created project {project.id} ({project.name!r})")
        return project

    def update(self, project_id: str, **changes) -> Result:
        """Overwrite only the supplied fields of a project."""
        project = self.get(project_id)
        if project is None:
            logger.debug(f"Update skipped, project {project_id} not found")
            return NotFound("project", project_id)
        before = self.snapshot()
        project.apply_changes(changes)
        self.save(rollback=before)
        return Updated(project)

    def delete(self, project_id: str) -> Result:
        """Remove a project together with all of its tasks."""
        project = self.get(project_id)
        if project is None:
            logger.debug(f"Delete skipped, project {project_id} not found")
            return NotFound("project", project_id)
        before = self.snapshot()
        self.projects = [p for p in self.projects if p.id != project_id]
        self.save(rollback=before)
        logger.info(f"Deleted project {project_id} and {len(project.tasks)} tasks")
        return Updated(project)

    def get(self, project_id: str) -> Optional[Project]:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    def list(self) -> List[Project]:
        return list(self.projects)

    # ── Queries ─────────────────────────────────────────────────────────────

    def list_by_status(self, status: str) -> List[Project]:
        """Projects with exactly this status; "all" returns everything."""
        if status == "all":
            return self.list()
        return [p for p in self.projects if p.status == status]

    def search(self, query: str, projects: Optional[Iterable[Project]] = None) -> List[Project]:
        """Case-insensitive substring match on name or description."""
        pool = self.projects if projects is None else projects
        needle = (query or "").lower()
        if not needle:
            return list(pool)
        return [
            p for p in pool
            if needle in p.name.lower() or needle in p.description.lower()
        ]

    def stats(self) -> Dict[str, int]:
        """Project counts by status. Unknown statuses only count toward total."""
        stats = {"total": len(self.projects), "active": 0, "completed": 0, "onHold": 0}
        buckets = {
            ProjectStatus.ACTIVE.value: "active",
            ProjectStatus.COMPLETED.value: "completed",
            ProjectStatus.ON_HOLD.value: "onHold",
        }
        for project in self.projects:
            bucket = buckets.get(project.status)
            if bucket:
                stats[bucket] += 1
        return stats

    # ── Bulk ────────────────────────────────────────────────────────────────

    def replace_all(self, projects: List[Project]) -> None:
        """Swap in a whole new collection and persist it."""
        before = self.projects
        self.projects = list(projects)
        self.save(rollback=before)
        logger.info(f"Replaced collection with {len(self.projects)} projects")

    def clear(self) -> None:
        """Delete every project and the persisted key."""
        if self.writer is not None:
            self.writer.cancel()
        self.store.remove(self.key)
        self.projects = []
        logger.info("Cleared all project data")

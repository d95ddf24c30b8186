"""
Task repository.

Tasks live inside their projects; this repository reaches them through the
ProjectRepository and persists by asking it to save the whole collection.
"""
import logging
from datetime import datetime
from typing import List, Optional, Dict, Any

from .schema import Task, TaskView, TaskStatus, Priority, make_id, parse_date
from .projects import ProjectRepository
from .results import Updated, NotFound, Result

logger = logging.getLogger(__name__)


class TaskRepository:
    """Nested task CRUD plus queries across every project."""

    def __init__(self, projects: ProjectRepository):
        self.projects = projects

    def create(
        self,
        project_id: str,
        name: str,
        description: str = "",
        status: str = TaskStatus.TODO.value,
        priority: str = Priority.MEDIUM.value,
        due_date: Any = None,
        assignee: str = "",
    ) -> Result:
        """Append a task to an existing project. NotFound if there is none."""
        project = self.projects.get(project_id)
        if project is None:
            logger.warning(f"Task {name!r} not created: project {project_id} not found")
            return NotFound("project", project_id)

        task = Task(
            id=make_id("task"),
            project_id=project_id,
            name=name,
            description=description or "",
            status=status,
            priority=priority,
            due_date=parse_date(due_date),
            assignee=assignee or "",
        )
        before = self.projects.snapshot()
        project.tasks.append(task)
        self.projects.save(rollback=before)
        logger.info(f"Created task {task.id} in project {project_id}")
        return Updated(task)

    def update(self, project_id: str, task_id: str, **changes) -> Result:
        """
        Overwrite the supplied fields of a task.

        'completed' is not a writable field; it always follows the status in
        effect after the update, whether or not the update touched status.
        """
        project = self.projects.get(project_id)
        if project is None:
            return NotFound("project", project_id)
        task = project.find_task(task_id)
        if task is None:
            return NotFound("task", task_id)
        before = self.projects.snapshot()
        task.apply_changes(changes)
        self.projects.save(rollback=before)
        return Updated(task)

    def delete(self, project_id: str, task_id: str) -> Result:
        project = self.projects.get(project_id)
        if project is None:
            return NotFound("project", project_id)
        task = project.find_task(task_id)
        if task is None:
            return NotFound("task", task_id)
        before = self.projects.snapshot()
        project.tasks = [t for t in project.tasks if t.id != task_id]
        self.projects.save(rollback=before)
        logger.info(f"Deleted task {task_id} from project {project_id}")
        return Updated(task)

    def get(self, project_id: str, task_id: str) -> Optional[Task]:
        project = self.projects.get(project_id)
        return project.find_task(task_id) if project else None

    def toggle_complete(self, project_id: str, task_id: str, completed: bool) -> Result:
        """Checkbox semantics: checked moves to Done, unchecked back to To Do."""
        status = TaskStatus.DONE.value if completed else TaskStatus.TODO.value
        return self.update(project_id, task_id, status=status)

    # ── Cross-project queries ───────────────────────────────────────────────

    def list_all(self) -> List[TaskView]:
        """Every task, project order then task order, tagged with project name."""
        return [
            TaskView(task=t, project_name=p.name)
            for p in self.projects.projects
            for t in p.tasks
        ]

    def list_by_status(self, status: str) -> List[TaskView]:
        """Exact, case-sensitive status match."""
        return [v for v in self.list_all() if v.task.status == status]

    def list_overdue(self, now: Optional[datetime] = None) -> List[TaskView]:
        return [v for v in self.list_all() if v.task.is_overdue(now)]

    def list_pending(self) -> List[TaskView]:
        return [v for v in self.list_all() if not v.task.completed]

    def overdue_count(self, now: Optional[datetime] = None) -> int:
        return len(self.list_overdue(now))

    def search(self, query: str) -> List[TaskView]:
        """Case-insensitive substring match on task name or description."""
        needle = (query or "").lower()
        views = self.list_all()
        if not needle:
            return views
        return [
            v for v in views
            if needle in v.task.name.lower() or needle in v.task.description.lower()
        ]

    def stats(self, now: Optional[datetime] = None) -> Dict[str, int]:
        views = self.list_all()
        return {
            "pending": sum(1 for v in views if not v.task.completed),
            "overdue": len(self.list_overdue(now)),
            "completed": sum(1 for v in views if v.task.completed),
            "toDo": sum(1 for v in views if v.task.status == TaskStatus.TODO.value),
            "inProgress": sum(1 for v in views if v.task.status == TaskStatus.IN_PROGRESS.value),
            "total": len(views),
        }

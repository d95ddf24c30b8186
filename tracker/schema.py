"""
Project and task schema.

A Project exclusively owns an ordered list of Tasks. Task completion is a
function of status:

  To Do → In Progress → Done   (completed == status is Done)

Serialized field names match the persisted document exactly (camelCase), so
a load/save cycle reproduces the stored collection field-for-field.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import date, datetime, time as dtime, timezone
from typing import Optional, List, Dict, Any, Tuple
import time
import uuid


class ProjectStatus(Enum):
    """Project statuses offered by the UI. Storage accepts any string."""
    ACTIVE = "Active"
    COMPLETED = "Completed"
    ON_HOLD = "On Hold"

    @classmethod
    def values(cls) -> List[str]:
        return [s.value for s in cls]


class TaskStatus(Enum):
    """Task statuses, one per Kanban column."""
    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    DONE = "Done"

    @classmethod
    def values(cls) -> List[str]:
        return [s.value for s in cls]


class Priority(Enum):
    """Priority labels shared by projects and tasks (by convention only)."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def values(cls) -> List[str]:
        return [p.value for p in cls]


# Request payloads use the persisted (camelCase) names
FIELD_ALIASES = {
    "dueDate": "due_date",
    "projectId": "project_id",
    "createdAt": "created_at",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def make_id(prefix: str) -> str:
    """Generate a sortable unique ID (ms-precision timestamp + random hex)."""
    ts = int(time.time() * 1000)
    rand = uuid.uuid4().hex[:8]
    return f"{prefix}-{ts}-{rand}"


def parse_date(value: Any) -> Optional[date]:
    """Coerce a stored or submitted date value. Empty means no date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        # Full timestamps keep only their calendar day
        return parse_timestamp(text).date()
    raise TypeError(f"Expected a date, got {type(value).__name__}")


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp, accepting the trailing 'Z' browsers write."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise TypeError(f"Expected a timestamp, got {type(value).__name__}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def normalize_changes(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map camelCase payload keys onto attribute names."""
    return {FIELD_ALIASES.get(k, k): v for k, v in data.items()}


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _coerce_changes(changes: Dict[str, Any], fields: Tuple[str, ...], date_field: str) -> Dict[str, Any]:
    """Coerce the updatable subset of changes. Raises before anything is applied."""
    coerced = {}
    for key, value in changes.items():
        if key not in fields:
            continue
        coerced[key] = parse_date(value) if key == date_field else _text(value)
    return coerced


def _local_naive(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    return moment


@dataclass
class Task:
    """A unit of work inside a project."""

    id: str
    project_id: str
    name: str
    description: str = ""
    status: str = TaskStatus.TODO.value
    priority: str = Priority.MEDIUM.value
    due_date: Optional[date] = None
    assignee: str = ""
    created_at: datetime = field(default_factory=utc_now)

    UPDATABLE_FIELDS = ("name", "description", "status", "priority", "due_date", "assignee")

    @property
    def completed(self) -> bool:
        return self.status == TaskStatus.DONE.value

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """Due date passed and not done. A due date counts from its start of day."""
        if self.due_date is None or self.completed:
            return False
        now = _local_naive(now or datetime.now())
        return datetime.combine(self.due_date, dtime.min) < now

    def apply_changes(self, changes: Dict[str, Any]) -> List[str]:
        """Overwrite the supplied fields. Returns the names actually applied.

        All values are coerced first, so a bad value leaves the task unchanged.
        """
        coerced = _coerce_changes(changes, self.UPDATABLE_FIELDS, "due_date")
        for key, value in coerced.items():
            setattr(self, key, value)
        return list(coerced)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "assignee": self.assignee,
            "completed": self.completed,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], project_id: str = "") -> "Task":
        """Deserialize. A stored 'completed' flag is ignored; status decides."""
        return cls(
            id=str(data["id"]),
            project_id=str(data.get("projectId") or project_id),
            name=_text(data["name"]),
            description=_text(data.get("description")),
            status=_text(data.get("status") or TaskStatus.TODO.value),
            priority=_text(data.get("priority") or Priority.MEDIUM.value),
            due_date=parse_date(data.get("dueDate")),
            assignee=_text(data.get("assignee")),
            created_at=parse_timestamp(data["createdAt"]) if data.get("createdAt") else utc_now(),
        )


@dataclass
class Project:
    """A project and the tasks it owns."""

    id: str
    name: str
    description: str = ""
    status: str = ProjectStatus.ACTIVE.value
    priority: str = Priority.MEDIUM.value
    deadline: Optional[date] = None
    created_at: datetime = field(default_factory=utc_now)
    tasks: List[Task] = field(default_factory=list)

    UPDATABLE_FIELDS = ("name", "description", "status", "priority", "deadline")

    @property
    def progress(self) -> int:
        """Percentage of tasks done, rounded half-up. 0 for an empty project."""
        total = len(self.tasks)
        if total == 0:
            return 0
        done = sum(1 for t in self.tasks if t.completed)
        return (200 * done + total) // (2 * total)

    def find_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def apply_changes(self, changes: Dict[str, Any]) -> List[str]:
        coerced = _coerce_changes(changes, self.UPDATABLE_FIELDS, "deadline")
        for key, value in coerced.items():
            setattr(self, key, value)
        return list(coerced)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "createdAt": self.created_at.isoformat(),
            "tasks": [t.to_dict() for t in self.tasks],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        """Deserialize a project and its nested tasks."""
        if not isinstance(data, dict):
            raise TypeError(f"Expected a project object, got {type(data).__name__}")
        tasks = data.get("tasks") or []
        if not isinstance(tasks, list):
            raise TypeError("Project 'tasks' must be a list")
        project_id = str(data["id"])
        return cls(
            id=project_id,
            name=_text(data["name"]),
            description=_text(data.get("description")),
            status=_text(data.get("status") or ProjectStatus.ACTIVE.value),
            priority=_text(data.get("priority") or Priority.MEDIUM.value),
            deadline=parse_date(data.get("deadline")),
            created_at=parse_timestamp(data["createdAt"]) if data.get("createdAt") else utc_now(),
            tasks=[Task.from_dict(t, project_id=project_id) for t in tasks],
        )


@dataclass(frozen=True)
class TaskView:
    """A task annotated with its owning project's name (view-only)."""

    task: Task
    project_name: str

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        data = self.task.to_dict()
        data["projectName"] = self.project_name
        data["isOverdue"] = self.task.is_overdue(now)
        return data

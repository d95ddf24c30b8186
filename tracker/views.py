"""
Read-side views: the month calendar and the Kanban board.

Months are 0-based indexes (0 = January, 11 = December) throughout, the same
numbering the calendar payloads use.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional

from .schema import TaskStatus, TaskView, parse_date
from .tasks import TaskRepository
from .results import Result

GRID_CELLS = 42  # 6 weeks


@dataclass(frozen=True)
class DayCell:
    """One square of the month grid."""
    day: int
    month: int
    year: int
    is_current_month: bool

    @property
    def date(self) -> date:
        return date(self.year, self.month + 1, self.day)

    def to_dict(self) -> Dict[str, object]:
        return {
            "day": self.day,
            "month": self.month,
            "year": self.year,
            "isCurrentMonth": self.is_current_month,
            "date": self.date.isoformat(),
        }


def month_grid(year: int, month: int) -> List[DayCell]:
    """
    42 cells starting on the Sunday on or before the 1st of the month.

    Leading and trailing cells come from the neighbouring months, with their
    month index and year resolved (January's leading cells are December of
    year-1, December's trailing cells are January of year+1).
    """
    if not 0 <= month <= 11:
        raise ValueError(f"month index must be 0-11, got {month}")
    first = date(year, month + 1, 1)
    # date.weekday(): Monday=0 … Sunday=6
    lead = (first.weekday() + 1) % 7
    try:
        start = first - timedelta(days=lead)
        days = [start + timedelta(days=offset) for offset in range(GRID_CELLS)]
    except OverflowError as e:
        raise ValueError(f"grid for {year}-{month + 1:02d} runs outside the supported date range") from e
    cells = []
    for d in days:
        cells.append(DayCell(
            day=d.day,
            month=d.month - 1,
            year=d.year,
            is_current_month=(d.year == year and d.month == month + 1),
        ))
    return cells


class CalendarView:
    """Month calendar over task due dates, with its own month cursor."""

    def __init__(self, tasks: TaskRepository, today: Optional[date] = None):
        self.tasks = tasks
        self.go_to_today(today)

    def go_to_today(self, today: Optional[date] = None) -> None:
        today = today or date.today()
        self.year = today.year
        self.month = today.month - 1

    def next_month(self) -> None:
        if self.month == 11:
            self.year, self.month = self.year + 1, 0
        else:
            self.month += 1

    def prev_month(self) -> None:
        if self.month == 0:
            self.year, self.month = self.year - 1, 11
        else:
            self.month -= 1

    def month_grid(self, year: int, month: int) -> List[DayCell]:
        return month_grid(year, month)

    def current_grid(self) -> List[DayCell]:
        return month_grid(self.year, self.month)

    def tasks_for_date(self, day) -> List[TaskView]:
        """Tasks due on the given calendar day (date part only)."""
        target = parse_date(day)
        if target is None:
            return []
        return [v for v in self.tasks.list_all() if v.task.due_date == target]

    def tasks_by_day(self, cells: List[DayCell]) -> Dict[date, List[TaskView]]:
        """Bucket every dated task onto the grid's days in one pass."""
        days = {c.date: [] for c in cells}
        for view in self.tasks.list_all():
            due = view.task.due_date
            if due in days:
                days[due].append(view)
        return days


class KanbanBoard:
    """Three status columns over all tasks."""

    COLUMNS = (TaskStatus.TODO.value, TaskStatus.IN_PROGRESS.value, TaskStatus.DONE.value)

    def __init__(self, tasks: TaskRepository):
        self.tasks = tasks

    def column(self, status: str) -> List[TaskView]:
        return self.tasks.list_by_status(status)

    def columns(self) -> Dict[str, List[TaskView]]:
        return {status: self.column(status) for status in self.COLUMNS}

    def move_task(self, project_id: str, task_id: str, new_status: str) -> Result:
        """Drop a card into another column."""
        if new_status not in self.COLUMNS:
            raise ValueError(f"Unknown column: {new_status!r}")
        return self.tasks.update(project_id, task_id, status=new_status)

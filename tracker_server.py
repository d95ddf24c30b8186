#!/usr/bin/env python3
"""
Project Tracker Server
----------------------
JSON API over the tracker's project/task model, backed by a SQLite
key-value store. Serves the data behind the dashboard, project and task
lists, Kanban board, calendar and settings (export / import / clear).

Usage:
    python tracker_server.py
    python tracker_server.py --port 3000 --db /tmp/tracker.db

API:
    GET    /api/dashboard                        → { projects, tasks, overdue }
    GET    /api/projects?status=&q=              → { projects, count }
    POST   /api/projects                         → create
    GET    /api/projects/<id>                    → project with tasks
    PUT    /api/projects/<id>                    → partial update
    DELETE /api/projects/<id>                    → delete (cascades to tasks)
    POST   /api/projects/<id>/tasks              → create task
    GET    /api/projects/<id>/tasks/<tid>        → task
    PUT    /api/projects/<id>/tasks/<tid>        → partial update
    DELETE /api/projects/<id>/tasks/<tid>        → delete
    POST   /api/projects/<id>/tasks/<tid>/toggle → { completed: bool }
    GET    /api/tasks?status=&q=&overdue=&pending=
    GET    /api/kanban                           → three columns
    POST   /api/kanban/move                      → { projectId, taskId, status }
    GET    /api/calendar?year=&month=            → 42-cell grid (month is 0-11)
    GET    /api/calendar/day/<YYYY-MM-DD>        → tasks due that day
    GET    /api/export                           → export document (attachment)
    POST   /api/import                           → replace everything
    DELETE /api/data                             → clear everything

Mutating routes require an X-API-Key header when the secret environment
variable (TRACKER_API_SECRET by default) is set.
"""

import hmac
import json
import logging
import sys
from dataclasses import dataclass
from datetime import date
from functools import wraps
from typing import Optional

from flask import Flask, Response, jsonify, request

from tracker.config import TrackerConfig
from tracker.projects import ProjectRepository
from tracker.schema import Project, normalize_changes
from tracker.storage import KeyValueStore, DebouncedWriter, StorageError
from tracker.tasks import TaskRepository
from tracker.transfer import MalformedImport, export_document, export_filename, import_document
from tracker.validation import ValidationFailure, validate_project_form, validate_task_form
from tracker.views import CalendarView, KanbanBoard

logger = logging.getLogger(__name__)


# ── Wiring ───────────────────────────────────────────────────────────────────

@dataclass
class Services:
    """Every component the API needs, built once and passed in explicitly."""
    store: KeyValueStore
    projects: ProjectRepository
    tasks: TaskRepository
    calendar: CalendarView
    board: KanbanBoard


def build_services(cfg: TrackerConfig) -> Services:
    store = KeyValueStore(cfg.db_path)
    writer = DebouncedWriter(store, cfg.autosave_delay_secs) if cfg.autosave_delay_ms > 0 else None
    projects = ProjectRepository(store, key=cfg.storage_key, writer=writer)
    tasks = TaskRepository(projects)
    return Services(
        store=store,
        projects=projects,
        tasks=tasks,
        calendar=CalendarView(tasks),
        board=KanbanBoard(tasks),
    )


# ── Serialization helpers ────────────────────────────────────────────────────

def project_payload(project: Project, with_tasks: bool = False) -> dict:
    data = project.to_dict()
    data["progress"] = project.progress
    data["taskCount"] = len(project.tasks)
    if with_tasks:
        data["tasks"] = [
            dict(t.to_dict(), isOverdue=t.is_overdue()) for t in project.tasks
        ]
    else:
        data.pop("tasks")
    return data


def views_payload(views) -> list:
    return [v.to_dict() for v in views]


def _flag(name: str) -> bool:
    return request.args.get(name, "").lower() in ("1", "true", "yes")


def _json_body() -> dict:
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}


def not_found(result):
    return jsonify({"error": f"{result.kind.capitalize()} not found", "id": result.id}), 404


# ── App factory ──────────────────────────────────────────────────────────────

def create_app(cfg: Optional[TrackerConfig] = None, services: Optional[Services] = None) -> Flask:
    cfg = cfg or TrackerConfig.load()
    services = services or build_services(cfg)
    projects, tasks = services.projects, services.tasks
    calendar, board = services.calendar, services.board

    app = Flask(__name__)
    app.config["TRACKER"] = cfg
    app.extensions["tracker"] = services

    def require_api_key(f):
        """Decorator: reject mutations without a valid X-API-Key when a secret is set."""
        @wraps(f)
        def decorated(*args, **kwargs):
            secret = cfg.api_secret
            if not secret:
                return f(*args, **kwargs)
            provided = request.headers.get("X-API-Key", "").strip()
            if not hmac.compare_digest(provided, secret):
                code = 401 if not provided else 403
                return jsonify({"error": "Unauthorized"}), code
            return f(*args, **kwargs)
        return decorated

    @app.errorhandler(ValidationFailure)
    def handle_validation(e):
        return jsonify({"error": "Validation failed", "errors": e.errors}), 400

    @app.errorhandler(StorageError)
    def handle_storage(e):
        app.logger.error(f"Storage failure: {e}")
        return jsonify({"error": "Storage unavailable"}), 503

    # ── Dashboard ──

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "db": services.store.db_path})

    @app.route("/api/dashboard")
    def api_dashboard():
        task_stats = tasks.stats()
        return jsonify({
            "projects": projects.stats(),
            "tasks": task_stats,
            "overdue": task_stats["overdue"],
        })

    # ── Projects ──

    @app.route("/api/projects", methods=["GET"])
    def api_projects():
        result = projects.list_by_status(request.args.get("status", "all"))
        query = request.args.get("q", "").strip()
        if query:
            result = projects.search(query, result)
        return jsonify({
            "projects": [project_payload(p) for p in result],
            "count": len(result),
        })

    @app.route("/api/projects", methods=["POST"])
    @require_api_key
    def api_create_project():
        form = validate_project_form(_json_body())
        project = projects.create(
            name=form["name"],
            description=form.get("description", ""),
            status=form["status"],
            priority=form["priority"],
            deadline=form.get("deadline"),
        )
        return jsonify({"project": project_payload(project, with_tasks=True)}), 201

    @app.route("/api/projects/<project_id>", methods=["GET"])
    def api_get_project(project_id):
        project = projects.get(project_id)
        if project is None:
            return jsonify({"error": "Project not found", "id": project_id}), 404
        return jsonify({"project": project_payload(project, with_tasks=True)})

    @app.route("/api/projects/<project_id>", methods=["PUT"])
    @require_api_key
    def api_update_project(project_id):
        changes = validate_project_form(_json_body(), partial=True)
        result = projects.update(project_id, **changes)
        if not result:
            return not_found(result)
        return jsonify({"project": project_payload(result.value, with_tasks=True)})

    @app.route("/api/projects/<project_id>", methods=["DELETE"])
    @require_api_key
    def api_delete_project(project_id):
        result = projects.delete(project_id)
        if not result:
            return not_found(result)
        return jsonify({"deleted": project_id})

    # ── Tasks ──

    @app.route("/api/projects/<project_id>/tasks", methods=["POST"])
    @require_api_key
    def api_create_task(project_id):
        form = normalize_changes(validate_task_form(_json_body()))
        result = tasks.create(
            project_id,
            name=form["name"],
            description=form.get("description", ""),
            status=form["status"],
            priority=form["priority"],
            due_date=form.get("due_date"),
            assignee=form.get("assignee", ""),
        )
        if not result:
            return not_found(result)
        return jsonify({"task": result.value.to_dict()}), 201

    @app.route("/api/projects/<project_id>/tasks/<task_id>", methods=["GET"])
    def api_get_task(project_id, task_id):
        task = tasks.get(project_id, task_id)
        if task is None:
            return jsonify({"error": "Task not found", "id": task_id}), 404
        return jsonify({"task": dict(task.to_dict(), isOverdue=task.is_overdue())})

    @app.route("/api/projects/<project_id>/tasks/<task_id>", methods=["PUT"])
    @require_api_key
    def api_update_task(project_id, task_id):
        changes = normalize_changes(validate_task_form(_json_body(), partial=True))
        result = tasks.update(project_id, task_id, **changes)
        if not result:
            return not_found(result)
        return jsonify({"task": result.value.to_dict()})

    @app.route("/api/projects/<project_id>/tasks/<task_id>", methods=["DELETE"])
    @require_api_key
    def api_delete_task(project_id, task_id):
        result = tasks.delete(project_id, task_id)
        if not result:
            return not_found(result)
        return jsonify({"deleted": task_id})

    @app.route("/api/projects/<project_id>/tasks/<task_id>/toggle", methods=["POST"])
    @require_api_key
    def api_toggle_task(project_id, task_id):
        completed = _json_body().get("completed") is True
        result = tasks.toggle_complete(project_id, task_id, completed)
        if not result:
            return not_found(result)
        return jsonify({"task": result.value.to_dict()})

    @app.route("/api/tasks")
    def api_tasks():
        status = request.args.get("status")
        query = request.args.get("q", "").strip()
        if _flag("overdue"):
            views = tasks.list_overdue()
        elif _flag("pending"):
            views = tasks.list_pending()
        elif status:
            views = tasks.list_by_status(status)
        else:
            views = tasks.list_all()
        if query:
            ids = {id(v.task) for v in tasks.search(query)}
            views = [v for v in views if id(v.task) in ids]
        return jsonify({"tasks": views_payload(views), "count": len(views)})

    # ── Kanban ──

    @app.route("/api/kanban")
    def api_kanban():
        return jsonify({
            "columns": {
                status: views_payload(column)
                for status, column in board.columns().items()
            }
        })

    @app.route("/api/kanban/move", methods=["POST"])
    @require_api_key
    def api_kanban_move():
        data = _json_body()
        status = data.get("status", "")
        if status not in board.COLUMNS:
            return jsonify({"error": f"Invalid status: {status}"}), 400
        result = board.move_task(data.get("projectId", ""), data.get("taskId", ""), status)
        if not result:
            return not_found(result)
        return jsonify({"task": result.value.to_dict()})

    # ── Calendar ──

    @app.route("/api/calendar")
    def api_calendar():
        try:
            year = int(request.args.get("year", calendar.year))
            month = int(request.args.get("month", calendar.month))
            cells = calendar.month_grid(year, month)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        buckets = calendar.tasks_by_day(cells)
        today = date.today()
        days = []
        for cell in cells:
            entry = cell.to_dict()
            entry["isToday"] = cell.date == today
            entry["tasks"] = views_payload(buckets[cell.date])
            days.append(entry)
        return jsonify({"year": year, "month": month, "days": days})

    @app.route("/api/calendar/day/<day>")
    def api_calendar_day(day):
        try:
            views = calendar.tasks_for_date(day)
        except ValueError:
            return jsonify({"error": f"Invalid date: {day}"}), 400
        return jsonify({"date": day, "tasks": views_payload(views)})

    # ── Settings: export / import / clear ──

    @app.route("/api/export")
    def api_export():
        projects.flush()
        body = json.dumps(export_document(projects.list()), indent=2, ensure_ascii=False)
        return Response(
            body,
            mimetype="application/json",
            headers={"Content-Disposition": f"attachment; filename={export_filename()}"},
        )

    @app.route("/api/import", methods=["POST"])
    @require_api_key
    def api_import():
        try:
            count = import_document(projects, request.get_data())
        except MalformedImport as e:
            return jsonify({"error": "Invalid file format", "detail": str(e)}), 400
        return jsonify({"imported": count})

    @app.route("/api/data", methods=["DELETE"])
    @require_api_key
    def api_clear():
        projects.clear()
        return jsonify({"cleared": True})

    return app


# ── Main ─────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Project Tracker Server")
    parser.add_argument("--config", help="Path to tracker.yaml")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int)
    parser.add_argument("--db", help="Path to tracker.db (overrides TRACKER_DB env var)")
    args = parser.parse_args()

    cfg = TrackerConfig.load(args.config)
    if args.db:
        cfg.db_path = args.db
    host = args.host or cfg.host
    port = args.port or cfg.port

    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s [tracker] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    services = build_services(cfg)
    app = create_app(cfg, services)
    logger.info(f"Serving on http://{host}:{port} (db: {cfg.db_path})")
    try:
        # Single worker thread: repositories are not shared across threads
        app.run(host=host, port=port, debug=False, threaded=False)
    finally:
        services.projects.flush()

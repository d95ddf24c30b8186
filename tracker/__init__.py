# Project tracker: projects, nested tasks, and the views built on top of them.
#
# Components:
#   schema.py     - Data model (Project, Task, status and priority vocabularies)
#   results.py    - Updated / NotFound result values
#   storage.py    - SQLite key-value persistence and the debounced writer
#   projects.py   - Project repository (CRUD + stats)
#   tasks.py      - Task repository (nested CRUD + cross-project queries)
#   views.py      - Calendar month grid and Kanban board queries
#   validation.py - Form validation with per-field errors
#   transfer.py   - JSON export / import of the whole collection
#   config.py     - YAML configuration

"""
Form validation for project and task submissions.

Runs before any repository call. Unlike a first-error check, every field is
examined and the messages are returned per field so a form can mark each one.
"""
from typing import Any, Dict

from .schema import ProjectStatus, TaskStatus, Priority, parse_date


class ValidationFailure(Exception):
    """Raised when one or more form fields are invalid."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__(
            "; ".join(f"{name}: {msg}" for name, msg in errors.items())
        )


PROJECT_FORM = {
    "name": {"type": "string", "required": True, "min_length": 3},
    "description": {"type": "string"},
    "status": {"type": "string", "required": True, "allowed": ProjectStatus.values()},
    "priority": {"type": "string", "required": True, "allowed": Priority.values()},
    "deadline": {"type": "date"},
}

TASK_FORM = {
    "name": {"type": "string", "required": True, "min_length": 3},
    "description": {"type": "string"},
    "status": {"type": "string", "required": True, "allowed": TaskStatus.values()},
    "priority": {"type": "string", "required": True, "allowed": Priority.values()},
    "dueDate": {"type": "date"},
    "assignee": {"type": "string"},
}


class FormValidator:
    """
    Validates a submitted form against a field schema.

    Supports:
        - required fields (blank or whitespace-only counts as missing)
        - minimum length
        - allowed-value lists
        - ISO dates (YYYY-MM-DD)
        - partial mode for updates: only submitted fields are checked
    """

    def validate(self, form: Dict[str, Any], schema: Dict[str, dict], partial: bool = False) -> Dict[str, Any]:
        """
        Validate form against schema.

        Returns:
            dict of the known fields that were submitted, strings stripped of
            surrounding whitespace for required text.

        Raises:
            ValidationFailure carrying a message for each bad field.
        """
        errors: Dict[str, str] = {}
        cleaned: Dict[str, Any] = {}

        for name, rules in schema.items():
            if partial and name not in form:
                continue
            value = form.get(name)
            blank = value is None or (isinstance(value, str) and not value.strip())

            if blank:
                if rules.get("required"):
                    errors[name] = "This field is required"
                elif name in form:
                    cleaned[name] = None if rules.get("type") == "date" else ""
                continue

            if rules.get("type") == "date":
                try:
                    cleaned[name] = parse_date(value)
                except (TypeError, ValueError):
                    errors[name] = "Enter a valid date (YYYY-MM-DD)"
                continue

            if not isinstance(value, str):
                errors[name] = "Must be text"
                continue

            min_length = rules.get("min_length")
            if min_length and len(value.strip()) < min_length:
                errors[name] = f"Minimum {min_length} characters required"
                continue

            allowed = rules.get("allowed")
            if allowed and value not in allowed:
                errors[name] = f"Must be one of: {', '.join(allowed)}"
                continue

            cleaned[name] = value.strip() if rules.get("required") else value

        if errors:
            raise ValidationFailure(errors)
        return cleaned


def validate_project_form(form: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    return FormValidator().validate(form, PROJECT_FORM, partial=partial)


def validate_task_form(form: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    return FormValidator().validate(form, TASK_FORM, partial=partial)

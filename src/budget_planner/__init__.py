"""Monthly budget planner desktop client."""

__all__ = [
    "app",
    "backend",
    "catalog",
    "columns",
    "config",
    "history",
    "models",
    "sorting",
    "storage",
    "store",
    "timezones",
    "validation",
    "viewmodels",
    "widgets",
]

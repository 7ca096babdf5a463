"""Runtime configuration assembled from the environment and the command line."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

from .storage import DEFAULT_PREFERENCES_FILE
from .store import DEFAULT_LEDGER_LIMIT

ENV_BACKEND = "BUDGET_PLANNER_BACKEND"
ENV_PREFERENCES = "BUDGET_PLANNER_PREFERENCES"
ENV_LOG_LEVEL = "BUDGET_PLANNER_LOG_LEVEL"
ENV_LEDGER_PAGE_SIZE = "BUDGET_PLANNER_LEDGER_PAGE_SIZE"

DEFAULT_BACKEND_COMMAND = "budget-backend"


@dataclass(slots=True)
class AppConfig:
    backend_command: List[str] = field(default_factory=lambda: [DEFAULT_BACKEND_COMMAND])
    preferences_file: Path = DEFAULT_PREFERENCES_FILE
    log_level: str = "INFO"
    ledger_page_size: int = DEFAULT_LEDGER_LIMIT

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        environ = os.environ if environ is None else environ
        config = cls()
        if environ.get(ENV_BACKEND):
            config.backend_command = shlex.split(environ[ENV_BACKEND])
        if environ.get(ENV_PREFERENCES):
            config.preferences_file = Path(environ[ENV_PREFERENCES]).expanduser()
        if environ.get(ENV_LOG_LEVEL):
            config.log_level = environ[ENV_LOG_LEVEL].upper()
        if environ.get(ENV_LEDGER_PAGE_SIZE):
            try:
                size = int(environ[ENV_LEDGER_PAGE_SIZE])
            except ValueError as exc:
                raise ValueError(f"{ENV_LEDGER_PAGE_SIZE} must be an integer") from exc
            if size <= 0:
                raise ValueError(f"{ENV_LEDGER_PAGE_SIZE} must be positive")
            config.ledger_page_size = size
        return config

    def override(
        self,
        *,
        backend: Optional[str] = None,
        preferences_file: Optional[str] = None,
        log_level: Optional[str] = None,
    ) -> "AppConfig":
        """Apply command-line values on top of the environment."""
        if backend:
            self.backend_command = shlex.split(backend)
        if preferences_file:
            self.preferences_file = Path(preferences_file).expanduser()
        if log_level:
            self.log_level = log_level.upper()
        return self

"""Templates, global categories and the one-time template schema setup."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from .backend import BackendError, BudgetBackend, is_schema_not_ready
from .models import BudgetTemplate, BudgetTemplateDetail, GlobalCategory, TemplateDraft
from .validation import validate_global_category, validate_template

logger = logging.getLogger(__name__)


class TemplateCatalog:
    """Request-scoped state behind the template and global-category screens.

    Errors stay local to this object. A failure that means the template
    tables do not exist yet sets ``needs_migration`` instead of ``error`` so
    the view can offer the setup action.
    """

    def __init__(self, backend: BudgetBackend) -> None:
        self.backend = backend
        self.templates: List[BudgetTemplate] = []
        self.global_categories: List[GlobalCategory] = []
        self.loading = False
        self.error: Optional[str] = None
        self.needs_migration = False
        self._listeners: List[Callable[["TemplateCatalog"], None]] = []

    def add_listener(self, callback: Callable[["TemplateCatalog"], None]) -> None:
        self._listeners.append(callback)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _record_failure(self, action: str, exc: BackendError) -> None:
        if is_schema_not_ready(exc):
            logger.info("%s: template tables are missing, migration required", action)
            self.needs_migration = True
            self.error = None
        else:
            logger.error("%s failed: %s", action, exc)
            self.error = str(exc)
        self.loading = False
        self._notify()

    async def load(self) -> bool:
        self.loading = True
        self.error = None
        self._notify()
        templates, categories = await asyncio.gather(
            self.backend.get_budget_templates(),
            self.backend.get_global_categories(),
            return_exceptions=True,
        )
        for result in (templates, categories):
            if isinstance(result, BackendError):
                self._record_failure("Loading templates", result)
                return False
            if isinstance(result, BaseException):
                raise result
        self.templates = templates
        self.global_categories = categories
        self.needs_migration = False
        self.loading = False
        self._notify()
        return True

    async def run_migration(self) -> bool:
        try:
            message = await self.backend.run_migration()
        except BackendError as exc:
            logger.error("Migration failed: %s", exc)
            self.error = str(exc)
            self._notify()
            return False
        logger.info("Migration finished: %s", message or "ok")
        self.needs_migration = False
        return await self.load()

    # ------------------------------------------------------------------ #
    # Global categories
    # ------------------------------------------------------------------ #
    async def create_global_category(self, name: str, description: Optional[str] = None) -> Optional[GlobalCategory]:
        name = validate_global_category(name)
        try:
            created = await self.backend.create_global_category(name, (description or "").strip() or None)
        except BackendError as exc:
            self._record_failure("Creating category", exc)
            return None
        self.global_categories.append(created)
        self._notify()
        return created

    async def update_global_category(
        self, category_id: int, name: str, description: Optional[str] = None
    ) -> Optional[GlobalCategory]:
        name = validate_global_category(name)
        try:
            updated = await self.backend.update_global_category(
                category_id, name, (description or "").strip() or None
            )
        except BackendError as exc:
            self._record_failure("Updating category", exc)
            return None
        self.global_categories = [
            updated if c.global_category_id == category_id else c for c in self.global_categories
        ]
        self._notify()
        return updated

    async def delete_global_category(self, category_id: int) -> bool:
        try:
            await self.backend.delete_global_category(category_id)
        except BackendError as exc:
            self._record_failure("Deleting category", exc)
            return False
        self.global_categories = [
            c for c in self.global_categories if c.global_category_id != category_id
        ]
        self._notify()
        return True

    # ------------------------------------------------------------------ #
    # Templates
    # ------------------------------------------------------------------ #
    async def get_template(self, template_id: int) -> Optional[BudgetTemplateDetail]:
        try:
            return await self.backend.get_budget_template_with_categories(template_id)
        except BackendError as exc:
            self._record_failure("Loading template", exc)
            return None

    async def create_template(self, draft: TemplateDraft) -> Optional[BudgetTemplateDetail]:
        validate_template(draft)
        try:
            created = await self.backend.create_budget_template(draft)
        except BackendError as exc:
            self._record_failure("Creating template", exc)
            return None
        await self.load()
        return created

    async def update_template(self, template_id: int, draft: TemplateDraft) -> Optional[BudgetTemplateDetail]:
        validate_template(draft)
        try:
            updated = await self.backend.update_budget_template(template_id, draft)
        except BackendError as exc:
            self._record_failure("Updating template", exc)
            return None
        await self.load()
        return updated

    async def delete_template(self, template_id: int) -> bool:
        try:
            await self.backend.delete_budget_template(template_id)
        except BackendError as exc:
            self._record_failure("Deleting template", exc)
            return False
        await self.load()
        return True

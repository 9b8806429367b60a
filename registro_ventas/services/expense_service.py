# ==============================================================================
# SERVICIO DE GASTOS
# ==============================================================================
# Registro de gastos del negocio. Las categorías son una enumeración
# abierta: las conocidas vienen sembradas y se aceptan nuevas sin cambios.
# ==============================================================================

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from registro_ventas import config
from registro_ventas.models import (
    CategoryRegistry,
    DEFAULT_EXPENSE_CATEGORY,
    EXPENSE_CATEGORIES,
    Expense,
)
from registro_ventas.services.collection_sync import CollectionSync

logger = logging.getLogger(__name__)


class ExpenseService:
    """Registro y categorías de gastos."""

    def __init__(self, sync: CollectionSync, audit_service=None,
                 clock: Callable[[], str] = None):
        self.sync = sync
        self.audit_service = audit_service
        self.categories = CategoryRegistry(EXPENSE_CATEGORIES)
        self._clock = clock or (lambda: datetime.now(timezone.utc).isoformat())

    def list_categories(self) -> List[str]:
        return list(self.categories)

    def register_expense(
        self,
        amount: Any,
        description: str,
        category: str = DEFAULT_EXPENSE_CATEGORY,
        user: str = None
    ) -> Dict[str, Any]:
        """
        Returns:
            {'ok': True, 'id'} o {'ok': False, 'kind', 'error'}
        """
        try:
            value = float(amount)
        except (TypeError, ValueError):
            value = 0.0
        if value <= 0:
            return {'ok': False, 'kind': 'validation', 'error': 'Ingrese un monto válido'}

        description = str(description or '').strip()
        if not description:
            return {'ok': False, 'kind': 'validation', 'error': 'Ingrese una descripción'}

        category = self.categories.register(category or DEFAULT_EXPENSE_CATEGORY)
        expense = Expense(amount=value, category=category, description=description, date=self._clock())

        result = self.sync.create(config.EXPENSES, expense.to_dict())
        if result['ok']:
            logger.info('[GASTOS] %s - %.2f', category, value)
            if self.audit_service:
                self.audit_service.log_expense_created(user, result['id'], category, value)
        return result

# ==============================================================================
# SERVICIO DE AUDITORÍA
# ==============================================================================
# Registro de actividad en la colección 'audit'.
# Formatea mensajes humanizados y categoriza eventos.
#
# Es de MEJOR ESFUERZO: un fallo del almacén al auditar se registra en el
# log y NUNCA interrumpe la operación de negocio que lo originó.
# ==============================================================================

import logging
from typing import Any, Dict, List

from registro_ventas import config
from registro_ventas.errors import StoreError
from registro_ventas.models import AuditLog, AuditType
from registro_ventas.repositories.interfaces import IDocumentStore

logger = logging.getLogger(__name__)


class AuditService:
    """
    Servicio para registro y consulta de auditoría.

    Centraliza:
    - Registro de eventos con mensajes humanizados
    - Categorización (VENTA, STOCK, CLIENTE, PRODUCTO, GASTO, USUARIO)
    - Consulta de los eventos recientes
    """

    def __init__(self, store: IDocumentStore):
        self.store = store

    # =========================================================================
    # REGISTRO DE EVENTOS
    # =========================================================================

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> bool:
        """
        Registra un evento de auditoría genérico.

        Returns:
            True si se guardó
        """
        entry = AuditLog(
            type=log_type.value if isinstance(log_type, AuditType) else log_type,
            user=user or 'sistema',
            message=message,
            related_id=related_id or '',
            details=details or {},
        )
        try:
            self.store.create(config.AUDIT, entry.to_dict())
            return True
        except StoreError as e:
            logger.warning('[AUDITORIA] No se pudo registrar "%s": %s', message, e)
            return False

    def log_sale_created(self, user: str, sale_id: str, client: str, product: str,
                         quantity: int, unit: str, total: float, status: str) -> None:
        message = (
            f"Venta registrada por {user}: {client} - {product} x {quantity} {unit} "
            f"- Total: S/ {total:.2f} - Estado: {status}"
        )
        self.log(AuditType.VENTA, user, message, sale_id,
                 {'total': total, 'status': status, 'quantity': quantity})

    def log_sale_edited(self, user: str, sale_id: str, changes: Dict[str, Any]) -> None:
        message = f"Venta {sale_id} editada por {user}"
        self.log(AuditType.VENTA, user, message, sale_id, changes)

    def log_payment_status_change(self, user: str, sale_id: str, old_status: str, new_status: str) -> None:
        message = f"Venta {sale_id}: {old_status} → {new_status} por {user}"
        self.log(AuditType.VENTA, user, message, sale_id, {'from': old_status, 'to': new_status})

    def log_sale_deleted(self, user: str, sale_id: str) -> None:
        self.log(AuditType.VENTA, user, f"Venta {sale_id} eliminada por {user}", sale_id)

    def log_stock_deducted(self, user: str, product_id: str, product: str,
                           quantity: int, new_stock: int) -> None:
        message = f"Stock de {product}: -{quantity} (queda {new_stock})"
        self.log(AuditType.STOCK, user, message, product_id,
                 {'quantity': quantity, 'new_stock': new_stock})

    def log_stock_pending(self, user: str, sale_id: str, product_id: str) -> None:
        message = f"Venta {sale_id} marcada con stock pendiente de conciliar"
        self.log(AuditType.STOCK, user, message, sale_id, {'product_id': product_id})

    def log_client_created(self, user: str, client_id: str, name: str) -> None:
        self.log(AuditType.CLIENTE, user, f"Cliente creado: {name}", client_id)

    def log_product_change(self, user: str, product_id: str, name: str, action: str) -> None:
        self.log(AuditType.PRODUCTO, user, f"Producto {action}: {name}", product_id)

    def log_expense_created(self, user: str, expense_id: str, category: str, amount: float) -> None:
        message = f"Gasto registrado por {user}: {category} - S/ {amount:.2f}"
        self.log(AuditType.GASTO, user, message, expense_id, {'amount': amount})

    def log_user_login(self, user: str) -> None:
        self.log(AuditType.USUARIO, user, f"Inicio de sesión: {user}")

    def log_user_created(self, admin_user: str, username: str, role: str) -> None:
        message = f"Usuario {username} creado por {admin_user} con rol {role}"
        self.log(AuditType.USUARIO, admin_user, message, username, {'role': role})

    def log_role_change(self, admin_user: str, username: str, old_role: str, new_role: str) -> None:
        message = f"Rol de {username}: {old_role} → {new_role} por {admin_user}"
        self.log(AuditType.USUARIO, admin_user, message, username,
                 {'from': old_role, 'to': new_role})

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def _all_logs(self) -> List[Dict[str, Any]]:
        try:
            return self.store.list(config.AUDIT, 'createdAt')
        except StoreError as e:
            logger.warning('[AUDITORIA] No se pudieron leer los logs: %s', e)
            return []

    def get_recent_logs(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Eventos más recientes primero."""
        return self._all_logs()[:limit]

    def get_logs_by_type(self, log_type: str, limit: int = 100) -> List[Dict[str, Any]]:
        return [log for log in self._all_logs() if log.get('type') == log_type][:limit]

# ==============================================================================
# SERVICIO DE VENTAS - Coordinador de la transacción de venta (saga)
# ==============================================================================
# El almacén NO tiene transacciones entre documentos, así que registrar una
# venta es una secuencia de pasos confirmados por separado:
#
#   1. resolve_client  → reutiliza el cliente (nombre sin mayúsculas) o lo crea
#   2. build_sale      → copia nombre/categoría/precio del producto
#   3. persist_sale    → crea el documento de venta
#   4. deduct_stock    → descuento CONDICIONAL (solo si stock >= cantidad)
#
# Si el paso 4 falla, la venta recién escrita se ELIMINA (compensación).
# Si la compensación también falla, la venta se marca stockPending: true
# para conciliación manual y el resultado informa kind='partial'.
# Un cliente creado en el paso 1 nunca se revierte.
#
# Las validaciones ocurren ANTES de cualquier escritura.
# ==============================================================================

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from registro_ventas import config
from registro_ventas.errors import (
    ConflictError,
    NotFoundError,
    PartialWorkflowFailure,
    StoreError,
    ValidationError,
)
from registro_ventas.models import (
    CategoryRegistry,
    PaymentStatus,
    Sale,
    SALE_UNITS,
    default_unit_for,
    normalize_payment_status,
)
from registro_ventas.performance_logger import profile_function
from registro_ventas.repositories.interfaces import IDocumentStore
from registro_ventas.services.client_service import ClientService
from registro_ventas.services.session_service import SessionContext, require_admin

logger = logging.getLogger(__name__)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ==============================================================================
# REGISTRO DE LA SAGA
# ==============================================================================

@dataclass
class SagaStep:
    name: str
    status: str  # 'ok' | 'failed' | 'skipped'
    detail: str = ''


@dataclass
class SagaLog:
    """Resultado de cada paso ejecutado, en orden."""
    steps: List[SagaStep] = field(default_factory=list)

    def record(self, name: str, status: str, detail: str = '') -> None:
        self.steps.append(SagaStep(name, status, detail))
        log = logger.info if status == 'ok' else logger.warning
        log('[SAGA] %s: %s %s', name, status, detail)

    @property
    def failed_step(self) -> Optional[str]:
        for step in self.steps:
            if step.status == 'failed':
                return step.name
        return None

    def to_list(self) -> List[Dict[str, str]]:
        return [{'step': s.name, 'status': s.status, 'detail': s.detail} for s in self.steps]


# ==============================================================================
# COORDINADOR
# ==============================================================================

class SaleTransactionCoordinator:
    """
    Registra, edita y elimina ventas manteniendo consistentes ventas,
    stock y clientes.

    Responsabilidades:
    - Validar la venta contra el snapshot local del producto
    - Resolver o crear el cliente
    - Ejecutar la saga con compensación
    - Edición (sin tocar stock), cambio de estado de pago, eliminación (admin)
    """

    def __init__(
        self,
        store: IDocumentStore,
        audit_service=None,
        clock: Callable[[], str] = _iso_now
    ):
        """
        Args:
            store: Almacén de documentos
            audit_service: Servicio de auditoría (opcional)
            clock: Timestamp ISO de la transacción (campo date)
        """
        self.store = store
        self.audit_service = audit_service
        self._clock = clock
        self.units = CategoryRegistry(SALE_UNITS)

    # =========================================================================
    # VALIDACIÓN
    # =========================================================================

    @staticmethod
    def _parse_quantity(quantity: Any) -> int:
        if isinstance(quantity, bool):
            raise ValidationError('Cantidad inválida')
        if isinstance(quantity, float) and not quantity.is_integer():
            raise ValidationError('La cantidad debe ser un número entero')
        try:
            value = int(quantity)
        except (TypeError, ValueError):
            raise ValidationError('Cantidad inválida')
        if value <= 0:
            raise ValidationError('La cantidad debe ser mayor a 0')
        return value

    def validate(
        self,
        product: Optional[Dict[str, Any]],
        quantity: Any,
        client_name: str,
        payment_status: Any = PaymentStatus.PAID.value,
        unit: Optional[str] = None
    ) -> Tuple[int, str, str, str]:
        """
        Precondiciones de la venta. No realiza ninguna escritura.

        Returns:
            (cantidad, nombre_cliente, estado_pago, unidad) normalizados

        Raises:
            ValidationError: Si alguna precondición falla
        """
        if not product or not product.get('id'):
            raise ValidationError('Seleccione un producto')

        qty = self._parse_quantity(quantity)

        name = self._client_name(client_name)

        try:
            status = normalize_payment_status(payment_status)
        except ValueError as e:
            raise ValidationError(str(e))

        stock = int(product.get('stock', 0) or 0)
        if stock < qty:
            raise ValidationError(f'Solo hay {stock} unidades disponibles.')

        if unit is None or not str(unit).strip():
            unit = default_unit_for(product.get('name', ''))
        unit = self.units.register(str(unit).upper())

        return qty, name, status, unit

    # =========================================================================
    # PASOS DE LA SAGA
    # =========================================================================

    @profile_function(name='Saga: resolver cliente')
    def resolve_client(
        self,
        client_name: str,
        clients: List[Dict[str, Any]],
        log: SagaLog
    ) -> Tuple[str, bool]:
        """
        Busca el cliente por nombre (sin distinguir mayúsculas) o lo crea.

        Returns:
            (client_id, creado)

        Raises:
            StoreError: Si la creación del cliente falla
        """
        existing = ClientService.find_by_name(clients, client_name)
        if existing is not None:
            log.record('resolve_client', 'ok', f'existente {existing.get("id")}')
            return existing.get('id', ''), False

        try:
            client_id = self.store.create(config.CLIENTS, {'name': client_name})
        except StoreError as e:
            log.record('resolve_client', 'failed', str(e))
            raise
        log.record('resolve_client', 'ok', f'creado {client_id}')
        return client_id, True

    def build_sale(
        self,
        product: Dict[str, Any],
        quantity: int,
        unit: str,
        client_name: str,
        payment_status: str
    ) -> Sale:
        """Venta con copia inmutable de nombre, categoría y precio."""
        return Sale(
            product_id=product['id'],
            product=product.get('name', ''),
            category=product.get('category', ''),
            price=float(product.get('price', 0) or 0),
            quantity=quantity,
            unit=unit,
            client=client_name,
            payment_status=payment_status,
            date=self._clock(),
        )

    @profile_function(name='Saga: guardar venta')
    def persist_sale(self, sale: Sale, log: SagaLog) -> str:
        try:
            sale.id = self.store.create(config.SALES, sale.to_dict())
        except StoreError as e:
            log.record('persist_sale', 'failed', str(e))
            raise
        log.record('persist_sale', 'ok', sale.id)
        return sale.id

    @profile_function(name='Saga: descontar stock')
    def deduct_stock(self, product_id: str, quantity: int, log: SagaLog) -> int:
        """
        Raises:
            ConflictError: Si el stock actual ya no alcanza
            StoreError: Ante cualquier otro fallo del almacén
        """
        try:
            new_stock = self.store.decrement(config.PRODUCTS, product_id, 'stock', quantity)
        except StoreError as e:
            log.record('deduct_stock', 'failed', str(e))
            raise
        log.record('deduct_stock', 'ok', f'stock restante {new_stock}')
        return new_stock

    def compensate_sale(self, sale_id: str, log: SagaLog) -> None:
        """
        Elimina la venta ya escrita. Si no se puede, la marca stockPending.

        Raises:
            PartialWorkflowFailure: Si la venta no pudo eliminarse
        """
        try:
            self.store.delete(config.SALES, sale_id)
            log.record('compensate_sale', 'ok', sale_id)
            return
        except StoreError as e:
            log.record('compensate_sale', 'failed', str(e))

        try:
            self.store.update(config.SALES, sale_id, {'stockPending': True})
            log.record('mark_stock_pending', 'ok', sale_id)
        except StoreError as e:
            log.record('mark_stock_pending', 'failed', str(e))

        raise PartialWorkflowFailure(
            f'La venta {sale_id} quedó registrada sin descontar stock; requiere conciliación manual',
            saga_log=log
        )

    # =========================================================================
    # REGISTRO DE VENTA
    # =========================================================================

    @staticmethod
    def _client_name(value: Any) -> str:
        if value is not None and not isinstance(value, str):
            raise ValidationError('Nombre de cliente inválido')
        name = (value or '').strip()
        if not name:
            raise ValidationError('Ingrese el nombre del cliente')
        return name

    @staticmethod
    def _failure(kind: str, error: str, log: SagaLog, compensated: bool = False, **extra) -> Dict[str, Any]:
        result = {
            'ok': False,
            'kind': kind,
            'error': error,
            'steps': log.to_list(),
            'failed_step': log.failed_step,
            'compensated': compensated,
        }
        result.update(extra)
        return result

    def register_sale(
        self,
        product: Optional[Dict[str, Any]],
        quantity: Any,
        client_name: str,
        payment_status: Any = PaymentStatus.PAID.value,
        unit: Optional[str] = None,
        clients: Optional[List[Dict[str, Any]]] = None,
        user: str = None
    ) -> Dict[str, Any]:
        """
        Ejecuta la saga completa de una venta.

        Args:
            product: Snapshot del producto seleccionado (vista en vivo)
            quantity: Cantidad a vender
            client_name: Nombre libre del cliente
            payment_status: 'paid' o 'debt'
            unit: Unidad (por defecto según el nombre del producto)
            clients: Snapshot de clientes; None = leer del almacén
            user: Usuario que registra (auditoría)

        Returns:
            Dict {'ok': True, 'sale_id', ...} o {'ok': False, 'kind', 'error', ...}
        """
        log = SagaLog()

        try:
            qty, name, status, unit = self.validate(product, quantity, client_name, payment_status, unit)
        except ValidationError as e:
            logger.info('[VENTA] Validación rechazada: %s', e)
            return self._failure('validation', str(e), log)

        try:
            if clients is None:
                clients = self.store.list(config.CLIENTS)
            client_id, client_created = self.resolve_client(name, clients, log)
        except StoreError as e:
            return self._failure('store', f'No se pudo registrar el cliente: {e}', log)

        sale = self.build_sale(product, qty, unit, name, status)
        log.record('build_sale', 'ok', f'total {sale.total:.2f}')

        try:
            sale_id = self.persist_sale(sale, log)
        except StoreError as e:
            return self._failure('store', f'Error al registrar venta: {e}', log,
                                 client_id=client_id, client_created=client_created)

        try:
            new_stock = self.deduct_stock(sale.product_id, qty, log)
        except StoreError as e:
            kind = 'conflict' if isinstance(e, ConflictError) else 'store'
            try:
                self.compensate_sale(sale_id, log)
            except PartialWorkflowFailure as failure:
                logger.error('[VENTA] %s', failure)
                if self.audit_service:
                    self.audit_service.log_stock_pending(user, sale_id, sale.product_id)
                return self._failure('partial', str(failure), log, sale_id=sale_id,
                                     client_id=client_id, client_created=client_created)
            if kind == 'conflict':
                error = f'Stock insuficiente para {sale.product}: actualice e intente de nuevo'
            else:
                error = f'Error al descontar stock: {e}'
            return self._failure(kind, error, log, compensated=True,
                                 client_id=client_id, client_created=client_created)

        logger.info('[VENTA] %s - %s x %d %s = %.2f', name, sale.product, qty, unit, sale.total)
        if self.audit_service:
            if client_created:
                self.audit_service.log_client_created(user, client_id, name)
            self.audit_service.log_sale_created(
                user, sale_id, name, sale.product, qty, unit, sale.total, status
            )
            self.audit_service.log_stock_deducted(user, sale.product_id, sale.product, qty, new_stock)

        return {
            'ok': True,
            'sale_id': sale_id,
            'client_id': client_id,
            'client_created': client_created,
            'total': sale.total,
            'new_stock': new_stock,
            'steps': log.to_list(),
        }

    # =========================================================================
    # EDICIÓN Y ESTADO DE PAGO
    # =========================================================================

    def _load_sale(self, sale_id: str) -> Sale:
        doc = self.store.get(config.SALES, sale_id)
        if doc is None:
            raise NotFoundError('Venta no encontrada')
        return Sale.from_dict(doc)

    def edit_sale(
        self,
        sale_id: str,
        client: Optional[str] = None,
        quantity: Any = None,
        price: Any = None,
        user: str = None
    ) -> Dict[str, Any]:
        """
        Edita cliente, cantidad y/o precio y recalcula el total.
        NUNCA modifica el stock del producto: la corrección es manual.
        """
        try:
            sale = self._load_sale(sale_id)
        except StoreError as e:
            return {'ok': False, 'kind': e.kind, 'error': str(e)}

        try:
            if client is not None:
                sale.client = self._client_name(client)
            if quantity is not None:
                sale.quantity = self._parse_quantity(quantity)
            if price is not None:
                try:
                    new_price = float(price)
                except (TypeError, ValueError):
                    raise ValidationError('Precio inválido')
                if new_price < 0:
                    raise ValidationError('El precio no puede ser negativo')
                sale.price = new_price
        except ValidationError as e:
            return {'ok': False, 'kind': 'validation', 'error': str(e)}

        sale.recompute_total()
        changes = {
            'client': sale.client,
            'quantity': sale.quantity,
            'price': sale.price,
            'total': sale.total,
        }
        try:
            self.store.update(config.SALES, sale_id, changes)
        except StoreError as e:
            logger.error('[VENTA] Error al actualizar venta %s: %s', sale_id, e)
            return {'ok': False, 'kind': e.kind, 'error': f'Error al actualizar la venta: {e}'}

        if self.audit_service:
            self.audit_service.log_sale_edited(user, sale_id, changes)
        return {'ok': True, 'sale_id': sale_id, 'total': sale.total, 'sale': changes}

    def toggle_payment_status(self, sale: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        """Alterna pagado ↔ deuda (un estado ausente cuenta como pagado)."""
        try:
            current = normalize_payment_status(sale.get('paymentStatus'))
        except ValueError as e:
            return {'ok': False, 'kind': 'validation', 'error': str(e)}
        new_status = PaymentStatus.DEBT.value if current == PaymentStatus.PAID.value else PaymentStatus.PAID.value

        try:
            self.store.update(config.SALES, sale['id'], {'paymentStatus': new_status})
        except StoreError as e:
            logger.error('[VENTA] Error al cambiar estado de pago: %s', e)
            return {'ok': False, 'kind': e.kind, 'error': str(e)}

        if self.audit_service:
            self.audit_service.log_payment_status_change(user, sale['id'], current, new_status)
        return {'ok': True, 'sale_id': sale['id'], 'payment_status': new_status}

    # =========================================================================
    # ELIMINACIÓN
    # =========================================================================

    def delete_sale(self, sale_id: str, session: Optional[SessionContext]) -> Dict[str, Any]:
        """
        Elimina una venta. Solo administradores; el rechazo ocurre antes
        de cualquier llamada al almacén. No restaura stock.

        Raises:
            PermissionDeniedError: Si la sesión no es de un administrador
        """
        require_admin(session, 'eliminar ventas')
        try:
            self.store.delete(config.SALES, sale_id)
        except StoreError as e:
            logger.error('[VENTA] Error al eliminar venta %s: %s', sale_id, e)
            return {'ok': False, 'kind': e.kind, 'error': 'Error al eliminar'}
        logger.info('[VENTA] Venta %s eliminada por %s', sale_id, session.username)
        if self.audit_service:
            self.audit_service.log_sale_deleted(session.username, sale_id)
        return {'ok': True, 'sale_id': sale_id}

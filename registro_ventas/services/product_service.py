# ==============================================================================
# SERVICIO DE PRODUCTOS
# ==============================================================================
# Alta, edición y baja de productos; búsqueda y categorías sobre el
# snapshot en vivo. El stock solo se DESCUENTA desde la saga de ventas;
# aquí se fija de forma directa (corrección manual).
# ==============================================================================

import logging
from typing import Any, Dict, Iterable, List

from registro_ventas import config
from registro_ventas.errors import ValidationError
from registro_ventas.models import CategoryRegistry, Product
from registro_ventas.services.collection_sync import CollectionSync

logger = logging.getLogger(__name__)


class ProductService:
    """Gestión del catálogo de productos."""

    def __init__(self, sync: CollectionSync, audit_service=None):
        self.sync = sync
        self.audit_service = audit_service

    # =========================================================================
    # VALIDACIÓN
    # =========================================================================

    @staticmethod
    def _clean(data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Raises:
            ValidationError: Si falta el nombre/categoría o hay números inválidos
        """
        name = str(data.get('name') or '').strip()
        category = str(data.get('category') or '').strip()
        if not name:
            raise ValidationError('El nombre del producto es obligatorio')
        if not category:
            raise ValidationError('La categoría es obligatoria')
        try:
            price = float(data.get('price', 0) or 0)
            stock = int(data.get('stock', 0) or 0)
        except (TypeError, ValueError):
            raise ValidationError('Precio o stock inválido')
        if price < 0:
            raise ValidationError('El precio no puede ser negativo')
        if stock < 0:
            raise ValidationError('El stock no puede ser negativo')

        product = Product(
            id='',
            name=name,
            category=category,
            price=round(price, 2),
            stock=stock,
            description=str(data.get('description') or '').strip(),
            type=str(data.get('type') or '').strip(),
        )
        return product.to_dict()

    # =========================================================================
    # ESCRITURAS
    # =========================================================================

    def create_product(self, data: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        try:
            fields = self._clean(data)
        except ValidationError as e:
            return {'ok': False, 'kind': 'validation', 'error': str(e)}

        result = self.sync.create(config.PRODUCTS, fields)
        if result['ok']:
            logger.info('[PRODUCTOS] Creado %s (%s)', fields['name'], result['id'])
            if self.audit_service:
                self.audit_service.log_product_change(user, result['id'], fields['name'], 'creado')
        return result

    def update_product(self, product_id: str, data: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        try:
            fields = self._clean(data)
        except ValidationError as e:
            return {'ok': False, 'kind': 'validation', 'error': str(e)}

        result = self.sync.update(config.PRODUCTS, product_id, fields)
        if result['ok'] and self.audit_service:
            self.audit_service.log_product_change(user, product_id, fields['name'], 'actualizado')
        return result

    def delete_product(self, product_id: str, user: str = None) -> Dict[str, Any]:
        result = self.sync.delete(config.PRODUCTS, product_id)
        if result['ok'] and self.audit_service:
            self.audit_service.log_product_change(user, product_id, product_id, 'eliminado')
        return result

    # =========================================================================
    # CONSULTAS (sobre el snapshot)
    # =========================================================================

    @staticmethod
    def search(products: Iterable[Dict[str, Any]], term: str = '') -> List[Dict[str, Any]]:
        """Coincidencia parcial por nombre o categoría."""
        term = (term or '').strip().lower()
        return [
            p for p in products
            if not term
            or term in (p.get('name') or '').lower()
            or term in (p.get('category') or '').lower()
        ]

    @staticmethod
    def by_category(products: Iterable[Dict[str, Any]], category: str = None) -> List[Dict[str, Any]]:
        """Filtro por categoría ('All' o vacío = todos)."""
        if not category or category == 'All':
            return list(products)
        wanted = category.strip().lower()
        return [p for p in products if (p.get('category') or '').strip().lower() == wanted]

    @staticmethod
    def categories(products: Iterable[Dict[str, Any]]) -> CategoryRegistry:
        """Categorías presentes en el catálogo (enumeración abierta)."""
        registry = CategoryRegistry()
        for p in products:
            if (p.get('category') or '').strip():
                registry.register(p['category'])
        return registry

    @staticmethod
    def low_stock(products: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [p for p in products if Product.from_dict(p).is_low_stock]

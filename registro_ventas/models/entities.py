# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un documento del almacén.
# Los atributos Python usan snake_case; to_dict()/from_dict() usan los
# nombres de campo del almacén (camelCase) para no romper datos existentes.
# ==============================================================================

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Iterable
from enum import Enum


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class UserRole(str, Enum):
    """Roles de usuario disponibles en el sistema."""
    ADMIN = "admin"
    REGISTRAR = "registrar"


class PaymentStatus(str, Enum):
    """Estado de pago de una venta."""
    PAID = "paid"
    DEBT = "debt"


class AuditType(str, Enum):
    """Tipos de eventos de auditoría."""
    VENTA = "VENTA"
    STOCK = "STOCK"
    CLIENTE = "CLIENTE"
    PRODUCTO = "PRODUCTO"
    GASTO = "GASTO"
    USUARIO = "USUARIO"


def normalize_payment_status(value: Any) -> str:
    """Un estado ausente se interpreta como pagado."""
    if not value:
        return PaymentStatus.PAID.value
    value = value.value if isinstance(value, Enum) else str(value).strip().lower()
    if value not in (PaymentStatus.PAID.value, PaymentStatus.DEBT.value):
        raise ValueError(f"Estado de pago inválido: {value}")
    return value


def _round2(value: float) -> float:
    return round(float(value), 2)


# ==============================================================================
# ENUMERACIÓN ABIERTA - Categorías y unidades
# ==============================================================================

class CategoryRegistry:
    """
    Enumeración abierta de categorías.

    Se inicializa con valores conocidos y acepta valores nuevos con register(),
    sin cambios estructurales. La comparación ignora mayúsculas y la primera
    grafía registrada es la canónica.
    """

    def __init__(self, initial: Iterable[str] = ()):
        self._values: Dict[str, str] = {}
        for value in initial:
            self.register(value)

    def register(self, value: str) -> str:
        """Registra una categoría (si es nueva) y retorna su forma canónica."""
        clean = (value or '').strip()
        if not clean:
            raise ValueError("La categoría no puede estar vacía")
        return self._values.setdefault(clean.lower(), clean)

    def canonical(self, value: str) -> Optional[str]:
        """Forma canónica de una categoría conocida, o None."""
        return self._values.get((value or '').strip().lower())

    def __contains__(self, value: str) -> bool:
        return self.canonical(value) is not None

    def __iter__(self):
        return iter(list(self._values.values()))

    def __len__(self) -> int:
        return len(self._values)


# Categorías de gasto iniciales
EXPENSE_CATEGORIES = (
    'Inventario', 'Servicios', 'Sueldos', 'Mantenimiento',
    'Marketing', 'Alquiler', 'Otros',
)
DEFAULT_EXPENSE_CATEGORY = 'Servicios'

# Unidades de venta iniciales: U = unidades, TN = toneladas
SALE_UNITS = ('U', 'TN')


def default_unit_for(product_name: str) -> str:
    """Unidad sugerida: los productos 'molido' se venden por tonelada."""
    return 'TN' if 'molido' in (product_name or '').lower() else 'U'


# ==============================================================================
# ENTIDADES DE INVENTARIO Y CLIENTES
# ==============================================================================

@dataclass
class Product:
    """
    Producto del inventario.

    Attributes:
        id: Identificador del documento
        name: Nombre del producto
        category: Clasificación libre
        price: Precio unitario de venta
        stock: Cantidad disponible (nunca negativa)
        description: Descripción libre
        type: Clasificación secundaria opcional
    """
    id: str
    name: str
    category: str = ''
    price: float = 0.0
    stock: int = 0
    description: str = ''
    type: str = ''

    @property
    def is_low_stock(self) -> bool:
        return self.stock < 10

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia (sin id)."""
        return {
            'name': self.name,
            'category': self.category,
            'price': self.price,
            'stock': self.stock,
            'description': self.description,
            'type': self.type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        """Crea instancia desde un documento (con 'id' incluido)."""
        return cls(
            id=data.get('id', ''),
            name=data.get('name', ''),
            category=data.get('category', ''),
            price=float(data.get('price', 0) or 0),
            stock=int(data.get('stock', 0) or 0),
            description=data.get('description', ''),
            type=data.get('type', ''),
        )


@dataclass
class Client:
    """
    Cliente. El nombre visible se deriva de nombre y apellido.

    Attributes:
        id: Identificador del documento
        name: Nombre visible (usado para la resolución por nombre)
        first_name: Nombre
        last_name: Apellido
        phone: Teléfono de contacto
    """
    id: str
    name: str
    first_name: str = ''
    last_name: str = ''
    phone: str = ''

    @staticmethod
    def display_name(first_name: str, last_name: str) -> str:
        return f"{(first_name or '').strip()} {(last_name or '').strip()}".strip()

    def matches(self, name: str) -> bool:
        """Coincidencia exacta sin distinguir mayúsculas."""
        return self.name.strip().lower() == (name or '').strip().lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'phone': self.phone,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Client':
        return cls(
            id=data.get('id', ''),
            name=data.get('name', ''),
            first_name=data.get('firstName', ''),
            last_name=data.get('lastName', ''),
            phone=data.get('phone', ''),
        )


# ==============================================================================
# ENTIDADES DE VENTA
# ==============================================================================

@dataclass
class Sale:
    """
    Venta de un producto a un cliente.

    Nombre, categoría y precio del producto se copian al crear la venta y
    NO se vuelven a leer del producto después.

    Attributes:
        id: Identificador del documento ('' antes de persistir)
        product_id: ID del producto vendido
        product: Nombre del producto (copia)
        category: Categoría del producto (copia)
        price: Precio unitario (copia, editable)
        quantity: Cantidad vendida
        unit: Etiqueta de unidad (U, TN, ...)
        total: quantity * price al momento de la última edición
        client: Nombre visible del cliente
        payment_status: 'paid' o 'debt'
        date: Timestamp ISO de la transacción
        created_at: Timestamp asignado por el almacén
        stock_pending: True si la venta quedó sin descontar stock
    """
    product_id: str
    product: str
    price: float
    quantity: int
    client: str
    category: str = ''
    unit: str = 'U'
    payment_status: str = PaymentStatus.PAID.value
    date: str = ''
    total: float = 0.0
    id: str = ''
    created_at: Any = None
    stock_pending: bool = False

    def __post_init__(self):
        self.payment_status = normalize_payment_status(self.payment_status)
        self.recompute_total()

    @property
    def is_debt(self) -> bool:
        return self.payment_status == PaymentStatus.DEBT.value

    def recompute_total(self) -> float:
        """Recalcula total = cantidad x precio (redondeado a 2 decimales)."""
        self.total = _round2(self.quantity * self.price)
        return self.total

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia (sin id ni createdAt)."""
        d = {
            'product': self.product,
            'productId': self.product_id,
            'category': self.category,
            'quantity': self.quantity,
            'unit': self.unit,
            'paymentStatus': self.payment_status,
            'price': self.price,
            'total': self.total,
            'client': self.client,
            'date': self.date,
        }
        if self.stock_pending:
            d['stockPending'] = True
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Sale':
        return cls(
            id=data.get('id', ''),
            product_id=data.get('productId', ''),
            product=data.get('product', ''),
            category=data.get('category', ''),
            price=float(data.get('price', 0) or 0),
            quantity=int(data.get('quantity', 0) or 0),
            unit=data.get('unit', 'U') or 'U',
            client=data.get('client', ''),
            payment_status=data.get('paymentStatus'),
            date=data.get('date', ''),
            created_at=data.get('createdAt'),
            stock_pending=bool(data.get('stockPending', False)),
        )


# ==============================================================================
# ENTIDADES DE GASTOS
# ==============================================================================

@dataclass
class Expense:
    """
    Gasto del negocio. No tiene relación con ventas ni productos.
    """
    amount: float
    category: str
    description: str
    date: str
    id: str = ''
    created_at: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'amount': _round2(self.amount),
            'category': self.category,
            'description': self.description,
            'date': self.date,
        }


# ==============================================================================
# ENTIDADES DE USUARIO
# ==============================================================================

@dataclass
class UserAccount:
    """
    Perfil de usuario (la contraseña vive en el proveedor de identidad).
    """
    id: str
    username: str
    role: UserRole = UserRole.REGISTRAR
    created_at: Any = None

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            'username': self.username,
            'role': self.role.value if isinstance(self.role, Enum) else self.role,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserAccount':
        try:
            role = UserRole(data.get('role', 'registrar'))
        except ValueError:
            role = UserRole.REGISTRAR
        return cls(
            id=data.get('id', ''),
            username=data.get('username', ''),
            role=role,
            created_at=data.get('createdAt'),
        )


# ==============================================================================
# ENTIDADES DE AUDITORÍA
# ==============================================================================

@dataclass
class AuditLog:
    """
    Registro de auditoría.

    Attributes:
        type: Tipo de evento (VENTA, STOCK, CLIENTE, ...)
        user: Usuario que realizó la acción
        message: Mensaje descriptivo humanizado
        related_id: ID relacionado (venta, producto, ...)
        details: Detalles adicionales
    """
    type: str
    user: str
    message: str
    related_id: str = ''
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'user': self.user,
            'message': self.message,
            'relatedId': self.related_id,
            'details': self.details,
        }



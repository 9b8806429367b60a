# ==============================================================================
# EXCEPCIONES DEL DOMINIO
# ==============================================================================
# Los servicios convierten estas excepciones en resultados
# {'ok': False, 'kind': ..., 'error': ...} para las rutas.
# ==============================================================================


class RegistroError(Exception):
    """Excepción base de registro_ventas."""
    kind = 'error'


class ValidationError(RegistroError):
    """Falla una precondición (stock insuficiente, campo vacío...).

    Siempre se lanza ANTES de intentar cualquier escritura.
    """
    kind = 'validation'


class StoreError(RegistroError):
    """Fallo del almacén de documentos (red, backend caído, etc.)."""
    kind = 'store'


class ConflictError(StoreError):
    """Una actualización condicional fue rechazada por el almacén.

    Es reintentable: el llamador debe refrescar su snapshot y volver a intentar.
    """
    kind = 'conflict'


class NotFoundError(StoreError):
    """El documento solicitado no existe."""
    kind = 'not_found'


class PermissionDeniedError(RegistroError):
    """El rol actual no permite la operación."""
    kind = 'permission'


class PartialWorkflowFailure(RegistroError):
    """Un paso de la saga falló después de que otros ya se confirmaron
    y la compensación no pudo restaurar la consistencia.

    Attributes:
        saga_log: Registro de pasos ejecutados (SagaLog)
    """
    kind = 'partial'

    def __init__(self, message: str, saga_log=None):
        super().__init__(message)
        self.saga_log = saga_log


class IdentityError(RegistroError):
    """Error al crear una cuenta de usuario.

    Attributes:
        already_exists: True si el usuario ya existía
    """
    kind = 'identity'

    def __init__(self, message: str, already_exists: bool = False):
        super().__init__(message)
        self.already_exists = already_exists

# ==============================================================================
# PROVEEDOR DE IDENTIDAD - Credenciales y sesiones
# ==============================================================================
# Las contraseñas se guardan con werkzeug (generate_password_hash) en
# <data_dir>/credentials.json, o en memoria si no hay data_dir.
# Los perfiles (username, role) viven aparte, en la colección 'users'.
#
# La clave de login es el nombre de usuario en minúsculas y sin espacios:
#   "Juan Perez" -> "juanperez"
#
# IDENTIDADES SECUNDARIAS:
# Un administrador crea cuentas desde un contexto secundario temporal para
# NO cerrar ni reemplazar su propia sesión. El contexto siempre se cierra,
# también cuando la creación falla.
# ==============================================================================

import logging
import os
import re
import threading
import uuid
from typing import Dict, Optional, Set

from werkzeug.security import generate_password_hash, check_password_hash

from registro_ventas.errors import IdentityError
from registro_ventas.repositories.base import DictRepository

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r'\s+')


def login_key(username: str) -> str:
    """Clave de login: minúsculas, sin espacios."""
    return _WHITESPACE.sub('', str(username or '').lower())


class SecondaryIdentityContext:
    """
    Contexto de autenticación temporal, aislado de la sesión principal.

    Uso:
        ctx = provider.open_secondary_context()
        try:
            uid = ctx.create_account('vendedor1', 'secreto')
            ctx.sign_out()
        finally:
            ctx.close()
    """

    def __init__(self, provider: 'IdentityProvider'):
        self._provider = provider
        self.current_uid: Optional[str] = None
        self.closed = False

    def create_account(self, username: str, password: str) -> str:
        """Crea la cuenta; el contexto secundario queda con esa sesión."""
        if self.closed:
            raise IdentityError('El contexto secundario ya fue cerrado')
        self.current_uid = self._provider._create_credentials(username, password)
        return self.current_uid

    def sign_out(self) -> None:
        self.current_uid = None

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.current_uid = None
        self._provider._context_closed()


class IdentityProvider:
    """
    Implementación local de IIdentityProvider.

    Attributes:
        open_contexts: Contextos secundarios abiertos (debe volver a 0)
    """

    MIN_PASSWORD_LENGTH = 6

    def __init__(self, data_dir: Optional[str] = None):
        path = os.path.join(data_dir, 'credentials.json') if data_dir else None
        self._credentials = DictRepository(path)
        self._sessions: Set[str] = set()
        self._lock = threading.RLock()
        self.open_contexts = 0

    # =========================================================================
    # SESIONES
    # =========================================================================

    def sign_in(self, username: str, password: str) -> Optional[str]:
        """
        Valida credenciales.

        Returns:
            uid si son válidas, None si no
        """
        record = self._credentials.get_by_id(login_key(username))
        if not record or not check_password_hash(record.get('passwordHash', ''), password or ''):
            logger.info('[AUTH] Credenciales inválidas para %r', username)
            return None
        with self._lock:
            self._sessions.add(record['uid'])
        return record['uid']

    def sign_out(self, uid: str) -> None:
        with self._lock:
            self._sessions.discard(uid)

    def is_signed_in(self, uid: str) -> bool:
        return uid in self._sessions

    # =========================================================================
    # CUENTAS
    # =========================================================================

    def open_secondary_context(self) -> SecondaryIdentityContext:
        with self._lock:
            self.open_contexts += 1
        return SecondaryIdentityContext(self)

    def _context_closed(self) -> None:
        with self._lock:
            self.open_contexts -= 1

    def _create_credentials(self, username: str, password: str) -> str:
        key = login_key(username)
        if not key:
            raise IdentityError('Nombre de usuario requerido')
        if len(password or '') < self.MIN_PASSWORD_LENGTH:
            raise IdentityError(
                f'La contraseña debe tener al menos {self.MIN_PASSWORD_LENGTH} caracteres.'
            )
        with self._lock:
            if self._credentials.get_by_id(key) is not None:
                raise IdentityError('El usuario ya existe.', already_exists=True)
            uid = uuid.uuid4().hex
            try:
                self._credentials.update(key, {
                    'uid': uid,
                    'passwordHash': generate_password_hash(password),
                })
            except OSError as e:
                raise IdentityError(f'No se pudo guardar la cuenta: {e}') from e
        logger.info('[AUTH] Cuenta creada: %s', key)
        return uid

    def create_secondary_identity(self, username: str, password: str) -> str:
        """
        Crea una cuenta sin tocar la sesión del llamador.

        Raises:
            IdentityError: already_exists=True si el usuario ya existe
        """
        context = self.open_secondary_context()
        try:
            uid = context.create_account(username, password)
            context.sign_out()
            return uid
        finally:
            context.close()

    def delete_identity(self, uid: str) -> None:
        """Elimina las credenciales de un uid (no falla si no existe)."""
        with self._lock:
            credentials: Dict[str, dict] = self._credentials.get_all()
            for key, record in credentials.items():
                if record.get('uid') == uid:
                    self._credentials.delete(key)
                    break
            self._sessions.discard(uid)

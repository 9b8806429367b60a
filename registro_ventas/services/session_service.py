# ==============================================================================
# SERVICIO DE SESIONES - Contexto explícito de identidad y rol
# ==============================================================================
# Cada login crea un SessionContext {user_id, username, role} que se pasa
# explícitamente a los servicios que verifican permisos.
# El contexto vive desde login() hasta logout(); no hay estado global
# de "usuario actual".
# ==============================================================================

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from registro_ventas import config
from registro_ventas.errors import PermissionDeniedError, StoreError
from registro_ventas.models import UserAccount, UserRole
from registro_ventas.repositories.identity_provider import login_key
from registro_ventas.repositories.interfaces import IDocumentStore, IIdentityProvider

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Identidad y rol del usuario autenticado."""
    user_id: str
    username: str
    role: str = UserRole.REGISTRAR.value

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.user_id, 'username': self.username, 'role': self.role}


def require_admin(session: Optional[SessionContext], action: str = 'realizar esta acción') -> None:
    """
    Raises:
        PermissionDeniedError: Si no hay sesión o el rol no es admin
    """
    if session is None or not session.is_admin:
        raise PermissionDeniedError(f'Solo un administrador puede {action}')


class SessionService:
    """
    Ciclo de vida de las sesiones.

    Uso:
        result = sessions.login('admin', 'admin123')
        ctx = sessions.current(result['session_id'])
        sessions.logout(result['session_id'])
    """

    def __init__(self, identity: IIdentityProvider, store: IDocumentStore, audit_service=None):
        self.identity = identity
        self.store = store
        self.audit_service = audit_service
        self._sessions: Dict[str, SessionContext] = {}
        self._lock = threading.Lock()

    def _load_profile(self, uid: str, username: str) -> SessionContext:
        """
        Perfil del usuario desde la colección users.
        Si falta el documento se recrea con rol registrar; si el almacén
        falla se entra con rol registrar sin tocar el almacén.
        """
        try:
            doc = self.store.get(config.USERS, uid)
            if doc is None:
                account = UserAccount(id=uid, username=login_key(username))
                self.store.create(config.USERS, account.to_dict(), doc_id=uid)
                logger.warning('[AUTH] Perfil ausente para %s, recreado como registrar', username)
            else:
                account = UserAccount.from_dict(doc)
        except StoreError as e:
            logger.error('[AUTH] No se pudo leer el perfil de %s: %s', username, e)
            account = UserAccount(id=uid, username=login_key(username))
        return SessionContext(user_id=uid, username=account.username, role=account.role.value)

    def login(self, username: str, password: str) -> Dict[str, Any]:
        """
        Returns:
            {'ok': True, 'session_id', 'user'} o {'ok': False, 'error'}
        """
        if not str(username or '').strip() or not password:
            return {'ok': False, 'error': 'Usuario y contraseña requeridos'}

        uid = self.identity.sign_in(username, password)
        if uid is None:
            return {'ok': False, 'error': 'Usuario o contraseña incorrectos'}

        context = self._load_profile(uid, username)
        session_id = uuid.uuid4().hex
        with self._lock:
            self._sessions[session_id] = context
        logger.info('[AUTH] Sesión iniciada: %s (%s)', context.username, context.role)
        if self.audit_service:
            self.audit_service.log_user_login(context.username)
        return {'ok': True, 'session_id': session_id, 'user': context.to_dict()}

    def current(self, session_id: Optional[str]) -> Optional[SessionContext]:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def logout(self, session_id: Optional[str]) -> bool:
        """Cierra la sesión; False si no existía."""
        with self._lock:
            context = self._sessions.pop(session_id, None) if session_id else None
        if context is None:
            return False
        # El uid puede seguir activo en otra sesión
        if not any(c.user_id == context.user_id for c in self._sessions.values()):
            self.identity.sign_out(context.user_id)
        logger.info('[AUTH] Sesión cerrada: %s', context.username)
        return True

    def update_role(self, user_id: str, role: str) -> None:
        """Propaga un cambio de rol a las sesiones activas del usuario."""
        with self._lock:
            for context in self._sessions.values():
                if context.user_id == user_id:
                    context.role = role

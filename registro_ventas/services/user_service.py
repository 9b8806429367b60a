# ==============================================================================
# SERVICIO DE USUARIOS
# ==============================================================================
# Alta de cuentas y gestión de roles. Solo administradores.
#
# CREACIÓN DE CUENTAS:
# La credencial se crea en un contexto de identidad SECUNDARIO, así la
# sesión del administrador no se cierra ni se reemplaza. Luego se escribe
# el perfil {username, role} en 'users' con el mismo uid. Si el perfil no
# se puede guardar, la credencial recién creada se elimina.
#
# PROTECCIÓN:
# El sistema nunca queda sin administradores.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from registro_ventas import config
from registro_ventas.errors import IdentityError, StoreError
from registro_ventas.models import UserAccount, UserRole
from registro_ventas.repositories.interfaces import IDocumentStore, IIdentityProvider
from registro_ventas.services.session_service import SessionContext, SessionService, require_admin

logger = logging.getLogger(__name__)


class UserService:
    """
    Servicio para gestión de usuarios.

    Responsabilidades:
    - Crear cuentas (credencial + perfil)
    - Cambiar roles
    - Cuenta administradora inicial
    """

    MIN_PASSWORD_LENGTH = 6
    VALID_ROLES = frozenset(r.value for r in UserRole)

    def __init__(
        self,
        identity: IIdentityProvider,
        store: IDocumentStore,
        sessions: SessionService = None,
        audit_service=None
    ):
        self.identity = identity
        self.store = store
        self.sessions = sessions
        self.audit_service = audit_service

    def normalize_role(self, role: Optional[str]) -> Optional[str]:
        """Rol válido en minúsculas, o None."""
        value = str(role or UserRole.REGISTRAR.value).strip().lower()
        return value if value in self.VALID_ROLES else None

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def list_users(self) -> List[Dict[str, Any]]:
        """Perfiles (sin credenciales), más recientes primero."""
        return [
            {'id': u.id, 'username': u.username, 'role': u.role.value, 'createdAt': u.created_at}
            for u in (UserAccount.from_dict(d) for d in self.store.list(config.USERS, 'createdAt'))
        ]

    def count_admins(self) -> int:
        return sum(1 for u in self.store.list(config.USERS) if u.get('role') == UserRole.ADMIN.value)

    # =========================================================================
    # ALTA DE CUENTAS
    # =========================================================================

    def _create_account(self, username: str, password: str, role: str) -> str:
        """
        Credencial en contexto secundario + perfil.

        Raises:
            IdentityError: Si la credencial o el perfil no se pudieron crear
        """
        uid = self.identity.create_secondary_identity(username, password)
        account = UserAccount(id=uid, username=username, role=UserRole(role))
        try:
            self.store.create(config.USERS, account.to_dict(), doc_id=uid)
        except StoreError as e:
            logger.error('[USUARIOS] Perfil de %s no guardado, se revierte la credencial: %s', username, e)
            self.identity.delete_identity(uid)
            raise IdentityError(f'No se pudo guardar el perfil: {e}') from e
        return uid

    def create_user(
        self,
        username: str,
        password: str,
        role: str = UserRole.REGISTRAR.value,
        admin: SessionContext = None
    ) -> Dict[str, Any]:
        """
        Crea un usuario sin afectar la sesión del administrador.

        Returns:
            Dict {'ok': True, 'id', 'username', 'role'} o
            {'ok': False, 'error', 'already_exists'}

        Raises:
            PermissionDeniedError: Si admin no es un administrador
        """
        require_admin(admin, 'crear usuarios')

        username = str(username or '').strip()
        if not username:
            return {'ok': False, 'error': 'Nombre de usuario requerido', 'already_exists': False}
        if len(password or '') < self.MIN_PASSWORD_LENGTH:
            return {
                'ok': False,
                'error': f'La contraseña debe tener al menos {self.MIN_PASSWORD_LENGTH} caracteres.',
                'already_exists': False,
            }
        normalized = self.normalize_role(role)
        if normalized is None:
            return {'ok': False, 'error': f'Rol inválido: {role}', 'already_exists': False}

        try:
            uid = self._create_account(username, password, normalized)
        except IdentityError as e:
            error = 'El usuario ya existe.' if e.already_exists else f'Error al procesar: {e}'
            return {'ok': False, 'error': error, 'already_exists': e.already_exists}

        logger.info('[USUARIOS] %s creó a %s (%s)', admin.username, username, normalized)
        if self.audit_service:
            self.audit_service.log_user_created(admin.username, username, normalized)
        return {'ok': True, 'id': uid, 'username': username, 'role': normalized}

    def ensure_admin(self, username: str, password: str) -> Optional[str]:
        """
        Crea la cuenta administradora inicial si no existe ningún usuario.

        Returns:
            uid creado, o None si ya había usuarios o no se pudo crear
        """
        if not username or not password:
            return None
        if self.store.list(config.USERS):
            return None
        try:
            uid = self._create_account(username, password, UserRole.ADMIN.value)
        except IdentityError as e:
            logger.error('[USUARIOS] No se pudo crear el administrador inicial: %s', e)
            return None
        logger.info('[USUARIOS] Administrador inicial creado: %s', username)
        return uid

    # =========================================================================
    # GESTIÓN DE ROLES
    # =========================================================================

    def change_role(self, user_id: str, new_role: str, admin: SessionContext = None) -> Dict[str, Any]:
        """
        Cambia el rol de un usuario (el nombre de usuario no se edita).

        Raises:
            PermissionDeniedError: Si admin no es un administrador
        """
        require_admin(admin, 'cambiar roles')

        role = self.normalize_role(new_role)
        if role is None:
            return {'ok': False, 'error': f'Rol inválido: {new_role}'}

        try:
            doc = self.store.get(config.USERS, user_id)
            if doc is None:
                return {'ok': False, 'error': 'Usuario no encontrado'}
            old_role = doc.get('role', UserRole.REGISTRAR.value)

            # No dejar el sistema sin administradores
            if old_role == UserRole.ADMIN.value and role != old_role and self.count_admins() <= 1:
                return {'ok': False, 'error': 'No se puede quitar el rol al último administrador'}

            self.store.update(config.USERS, user_id, {'role': role})
        except StoreError as e:
            logger.error('[USUARIOS] Error al cambiar rol de %s: %s', user_id, e)
            return {'ok': False, 'error': f'Error al procesar: {e}'}

        if self.sessions:
            self.sessions.update_role(user_id, role)
        if self.audit_service:
            self.audit_service.log_role_change(admin.username, doc.get('username', user_id), old_role, role)
        return {'ok': True, 'id': user_id, 'role': role}


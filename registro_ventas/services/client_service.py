# ==============================================================================
# SERVICIO DE CLIENTES
# ==============================================================================
# Alta y edición explícita de clientes. El nombre visible se deriva SIEMPRE
# de nombre + apellido; la saga de ventas también crea clientes (solo name).
# ==============================================================================

import logging
from typing import Any, Dict, Iterable, List, Optional

from registro_ventas import config
from registro_ventas.models import Client
from registro_ventas.services.collection_sync import CollectionSync

logger = logging.getLogger(__name__)


class ClientService:
    """Gestión de clientes."""

    def __init__(self, sync: CollectionSync, audit_service=None):
        self.sync = sync
        self.audit_service = audit_service

    @staticmethod
    def _fields(data: Dict[str, Any]) -> Dict[str, Any]:
        first = str(data.get('firstName') or '').strip()
        last = str(data.get('lastName') or '').strip()
        client = Client(
            id='',
            name=Client.display_name(first, last),
            first_name=first,
            last_name=last,
            phone=str(data.get('phone') or '').strip(),
        )
        return client.to_dict()

    def create_client(self, data: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        fields = self._fields(data)
        if not fields['name']:
            return {'ok': False, 'kind': 'validation', 'error': 'Ingrese el nombre del cliente'}
        result = self.sync.create(config.CLIENTS, fields)
        if result['ok'] and self.audit_service:
            self.audit_service.log_client_created(user, result['id'], fields['name'])
        return result

    def update_client(self, client_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        fields = self._fields(data)
        if not fields['name']:
            return {'ok': False, 'kind': 'validation', 'error': 'Ingrese el nombre del cliente'}
        return self.sync.update(config.CLIENTS, client_id, fields)

    @staticmethod
    def find_by_name(clients: Iterable[Dict[str, Any]], name: str) -> Optional[Dict[str, Any]]:
        """Coincidencia exacta sin distinguir mayúsculas."""
        for doc in clients:
            if Client.from_dict(doc).matches(name):
                return doc
        return None

    @staticmethod
    def suggestions(clients: Iterable[Dict[str, Any]], partial: str) -> List[Dict[str, Any]]:
        """Autocompletado: a partir de 2 caracteres, coincidencia parcial."""
        term = (partial or '').strip().lower()
        if len(term) < 2:
            return []
        return [c for c in clients if term in (c.get('name') or '').lower()]

    @staticmethod
    def search(clients: Iterable[Dict[str, Any]], term: str = '') -> List[Dict[str, Any]]:
        term = (term or '').strip().lower()
        return [
            c for c in clients
            if not term or term in (c.get('name') or '').lower() or term in (c.get('phone') or '')
        ]

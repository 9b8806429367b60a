# ==============================================================================
# REPOSITORIO BASE - Persistencia común en archivos JSON (o en memoria)
# ==============================================================================

import copy
import json
import os
from typing import Any, Dict, Optional
from abc import ABC, abstractmethod
import threading


class BaseRepository(ABC):
    """
    Clase base abstracta para la persistencia local.
    Proporciona lectura/escritura de archivos JSON con escritura atómica
    y un lock global contra escrituras concurrentes.

    Si file_path es None los datos viven solo en memoria (tests, scripts).
    """

    # Lock global para evitar escrituras concurrentes a archivos
    _file_lock = threading.RLock()

    def __init__(self, file_path: Optional[str] = None):
        """
        Args:
            file_path: Ruta absoluta al archivo JSON, o None para memoria
        """
        self.file_path = file_path
        self._memory = self._empty_data()
        if self.file_path:
            self._ensure_file_exists()

    def _ensure_file_exists(self) -> None:
        """Crea el archivo con datos vacíos si no existe."""
        directory = os.path.dirname(self.file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        if not os.path.exists(self.file_path):
            self._write_raw(self._empty_data())

    @abstractmethod
    def _empty_data(self) -> Any:
        """Estructura vacía (dict, list, etc.) según el repositorio."""
        pass

    def _read_raw(self) -> Any:
        """
        Lee los datos crudos.

        Returns:
            Copia de los datos (archivo JSON o memoria)
        """
        with self._file_lock:
            if not self.file_path:
                return copy.deepcopy(self._memory)
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except (json.JSONDecodeError, FileNotFoundError):
                # Archivo corrupto o inexistente: datos vacíos
                return self._empty_data()

    def _write_raw(self, data: Any) -> None:
        """
        Escribe los datos.

        Raises:
            OSError: Si hay error de escritura
        """
        with self._file_lock:
            if not self.file_path:
                self._memory = copy.deepcopy(data)
                return
            # Escribir a archivo temporal primero para atomicidad
            temp_path = self.file_path + '.tmp'
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False, default=str)
                os.replace(temp_path, self.file_path)
            except Exception:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise


class DictRepository(BaseRepository):
    """
    Repositorio para datos almacenados como diccionario.
    El ID es la clave del diccionario.

    Ejemplo: products_v2.json -> {"a1b2": {...}, "c3d4": {...}}
    """

    def _empty_data(self) -> Dict:
        return {}

    def get_all(self) -> Dict[str, Any]:
        """Obtiene todos los registros."""
        data = self._read_raw()
        return data if isinstance(data, dict) else {}

    def get_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        """Obtiene un registro por su ID, o None si no existe."""
        return self.get_all().get(record_id)

    def update(self, record_id: str, record_data: Dict[str, Any]) -> None:
        """Reemplaza un registro específico."""
        data = self.get_all()
        data[record_id] = record_data
        self._write_raw(data)

    def delete(self, record_id: str) -> Optional[Dict[str, Any]]:
        """
        Elimina un registro.

        Returns:
            Datos del registro eliminado o None si no existía
        """
        data = self.get_all()
        removed = data.pop(record_id, None)
        if removed is not None:
            self._write_raw(data)
        return removed

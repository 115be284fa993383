# ==============================================================================
# REPOSITORIO BASE - Funcionalidad común para acceso a archivos JSON
# ==============================================================================

import json
import logging
import os
import shutil
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from app_pedidos.errors import StorageError

logger = logging.getLogger(__name__)


class BaseRepository(ABC):
    """
    Clase base abstracta para todos los repositorios.
    Proporciona lectura/escritura de archivos JSON con un lock compartido.

    El lock es uno solo para todos los repositorios del proceso: un
    TransactionScope lo toma durante toda la operación, de modo que cada
    secuencia leer-verificar-escribir queda aislada de las demás.
    """

    # Lock global (re-entrante) compartido por todos los repositorios
    _file_lock = threading.RLock()

    def __init__(self, file_path: str):
        """
        Args:
            file_path: Ruta absoluta al archivo JSON de datos
        """
        self.file_path = file_path
        self._ensure_file_exists()

    @property
    def name(self) -> str:
        """Nombre corto del repositorio (nombre del archivo sin extensión)."""
        return os.path.splitext(os.path.basename(self.file_path))[0]

    @classmethod
    def lock(cls) -> threading.RLock:
        return BaseRepository._file_lock

    def _ensure_file_exists(self) -> None:
        """Crea el archivo con datos vacíos si no existe."""
        if not os.path.exists(self.file_path):
            os.makedirs(os.path.dirname(self.file_path) or '.', exist_ok=True)
            self._write_raw(self._empty_data())

    @abstractmethod
    def _empty_data(self) -> Any:
        """Estructura vacía (dict, list...) del repositorio."""

    def _read_raw(self) -> Any:
        """
        Lee los datos crudos del archivo JSON.

        Raises:
            StorageError: Si el archivo tiene JSON inválido o no se puede leer
        """
        with self._file_lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except FileNotFoundError:
                return self._empty_data()
            except (json.JSONDecodeError, OSError) as e:
                logger.error("No se pudo leer %s: %s", self.file_path, e)
                raise StorageError(f"Archivo de datos ilegible: {self.name}") from e

    def _write_temp(self, data: Any) -> str:
        """
        Escribe los datos a un archivo temporal junto al original.

        Returns:
            Ruta del archivo temporal (a confirmar con _replace_from_temp)
        """
        temp_path = self.file_path + '.tmp'
        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except (OSError, TypeError, ValueError):
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise
        return temp_path

    def _replace_from_temp(self, temp_path: str) -> None:
        # Reemplazo atómico en la mayoría de sistemas
        os.replace(temp_path, self.file_path)

    def backup(self) -> Optional[str]:
        """
        Copia el archivo actual a '<archivo>.bak' antes de reemplazarlo.

        Returns:
            Ruta de la copia, o None si el archivo todavía no existe
        """
        if not os.path.exists(self.file_path):
            return None
        backup_path = self.file_path + '.bak'
        shutil.copyfile(self.file_path, backup_path)
        return backup_path

    def restore_backup(self, backup_path: Optional[str]) -> None:
        """Vuelve el archivo al contenido guardado por backup()."""
        if backup_path is None:
            if os.path.exists(self.file_path):
                os.remove(self.file_path)
            return
        os.replace(backup_path, self.file_path)

    @staticmethod
    def discard_backup(backup_path: Optional[str]) -> None:
        if backup_path and os.path.exists(backup_path):
            os.remove(backup_path)

    def _write_raw(self, data: Any) -> None:
        """Escribe datos al archivo JSON (temporal + reemplazo)."""
        with self._file_lock:
            self._replace_from_temp(self._write_temp(data))

    def reload(self) -> None:
        """Recarga los datos desde el archivo (las subclases limpian su copia)."""


class DictRepository(BaseRepository):
    """
    Repositorio base para datos almacenados como diccionario {id: registro}.

    Las claves son strings en JSON pero se manejan como int internamente.
    Mantiene una copia en memoria del archivo para lecturas rápidas.
    """

    def __init__(self, file_path: str):
        super().__init__(file_path)
        self._cache: Dict[int, Dict[str, Any]] = {}
        self._cache_loaded = False

    def _empty_data(self) -> Dict:
        return {}

    @staticmethod
    def _normalize(raw_data: Dict[str, Any]) -> Dict[int, Dict[str, Any]]:
        """Convierte claves string a int."""
        normalized = {}
        for key, value in raw_data.items():
            try:
                normalized[int(key)] = value
            except (ValueError, TypeError):
                logger.warning("Clave no numérica ignorada: %r", key)
        return normalized

    @staticmethod
    def _denormalize(data: Dict[int, Dict[str, Any]]) -> Dict[str, Any]:
        """Convierte claves int a string para guardar en JSON."""
        return {str(k): v for k, v in data.items()}

    def load(self) -> Dict[int, Dict[str, Any]]:
        """
        Carga todos los registros (usa la copia en memoria si existe).

        Returns:
            Diccionario {id: datos}. No debe modificarse directamente:
            las escrituras pasan por TransactionScope.
        """
        with self._file_lock:
            if not self._cache_loaded:
                raw = self._read_raw()
                self._cache = self._normalize(raw if isinstance(raw, dict) else {})
                self._cache_loaded = True
            return self._cache

    def prepare_save(self, data: Dict[int, Dict[str, Any]]) -> str:
        """Primera fase de un guardado en dos pasos: escribe el temporal."""
        return self._write_temp(self._denormalize(data))

    def finish_save(self, temp_path: str, data: Dict[int, Dict[str, Any]]) -> None:
        """Segunda fase: reemplaza el archivo y actualiza la copia en memoria."""
        self._replace_from_temp(temp_path)
        self._cache = data
        self._cache_loaded = True

    def discard_temp(self, temp_path: str) -> None:
        if temp_path and os.path.exists(temp_path):
            os.remove(temp_path)

    def reload(self) -> Dict[int, Dict[str, Any]]:
        """Fuerza recarga desde archivo ignorando la copia en memoria."""
        with self._file_lock:
            self._cache_loaded = False
            return self.load()

    def get_by_id(self, record_id: int) -> Optional[Dict[str, Any]]:
        """
        Obtiene una copia de un registro por su ID.

        Returns:
            Datos del registro o None si no existe
        """
        with self._file_lock:
            record = self.load().get(int(record_id))
            return json.loads(json.dumps(record)) if record is not None else None

    def items(self) -> List[Tuple[int, Dict[str, Any]]]:
        """Copia de todos los pares (id, datos)."""
        with self._file_lock:
            snapshot = json.loads(json.dumps(self._denormalize(self.load())))
        return [(int(k), v) for k, v in snapshot.items()]

    def get_next_id(self, data: Dict[int, Any] = None) -> int:
        """Siguiente ID entero disponible."""
        data = self.load() if data is None else data
        if not data:
            return 1
        return max(data.keys()) + 1

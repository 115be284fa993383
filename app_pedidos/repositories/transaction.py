# ==============================================================================
# TRANSACTION SCOPE - Unidad de trabajo sobre los repositorios JSON
# ==============================================================================
# Toda operación que lee stock, verifica una regla y escribe, lo hace dentro
# de un TransactionScope:
#   - Toma el lock global de repositorios durante toda la operación
#   - Trabaja sobre copias de los datos (snapshot al primer acceso)
#   - Al salir sin excepción escribe los repositorios modificados:
#     primero todos los temporales, después todos los reemplazos
#   - Si falla un reemplazo, restaura los archivos ya reemplazados
#   - Si sale con excepción no escribe nada
#
# Los servicios reciben un scope opcional. Si se lo pasan, se unen a él y no
# confirman por su cuenta; si no, abren uno propio (ver transaction()).
# ==============================================================================

import copy
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from app_pedidos.errors import StorageError
from app_pedidos.repositories.base import BaseRepository, DictRepository

logger = logging.getLogger(__name__)


class TransactionScope:
    """
    Alcance transaccional sobre uno o más DictRepository.

    Uso:
        with TransactionScope() as tx:
            data = tx.get(product_repo, 3)
            data['stock'] -= 1
            tx.put(product_repo, 3, data)
    """

    def __init__(self):
        self._staged: Dict[DictRepository, Dict[int, Dict[str, Any]]] = {}
        self._dirty: List[DictRepository] = []
        self._callbacks: List[Callable[[], None]] = []
        self._active = False

    # =========================================================================
    # CICLO DE VIDA
    # =========================================================================

    def __enter__(self) -> 'TransactionScope':
        BaseRepository.lock().acquire()
        self._active = True
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is None:
                self._commit()
                self._run_callbacks()
            else:
                logger.debug("Transacción descartada por %s", exc_type.__name__)
        finally:
            self._active = False
            self._staged.clear()
            BaseRepository.lock().release()
        return False

    def _commit(self) -> None:
        """Escribe los repositorios modificados en dos fases."""
        prepared: List[Tuple[DictRepository, str]] = []
        try:
            for repo in self._dirty:
                prepared.append((repo, repo.prepare_save(self._staged[repo])))
        except (OSError, TypeError, ValueError) as e:
            for repo, temp_path in prepared:
                repo.discard_temp(temp_path)
            logger.error("Fallo preparando escritura de %s: %s",
                         [r.name for r in self._dirty], e)
            raise StorageError("No se pudieron guardar los cambios") from e

        # Cada archivo se copia antes de reemplazarlo para poder deshacer
        # los reemplazos ya hechos si falla uno posterior
        replaced: List[Tuple[DictRepository, Optional[str]]] = []
        try:
            for repo, temp_path in prepared:
                backup_path = repo.backup()
                try:
                    repo.finish_save(temp_path, self._staged[repo])
                except OSError:
                    repo.discard_backup(backup_path)
                    raise
                replaced.append((repo, backup_path))
        except OSError as e:
            for repo, temp_path in prepared:
                repo.discard_temp(temp_path)
            restored = self._restore(replaced)
            for repo, _ in prepared:
                repo.reload()
            if restored:
                logger.error("Fallo confirmando escritura de %s, archivos restaurados: %s",
                             [r.name for r, _ in prepared], e)
                raise StorageError("No se pudieron confirmar los cambios") from e
            logger.critical("Fallo confirmando escritura de %s y no se pudo restaurar: %s",
                            [r.name for r, _ in prepared], e)
            raise StorageError(
                "Los cambios quedaron aplicados parcialmente; revisar los archivos de datos",
                sin_cambios=False,
            ) from e

        for repo, backup_path in replaced:
            repo.discard_backup(backup_path)

    @staticmethod
    def _restore(replaced: List[Tuple[DictRepository, Optional[str]]]) -> bool:
        """
        Deshace los reemplazos ya hechos, en orden inverso.

        Returns:
            True si todos los archivos volvieron a su contenido anterior
        """
        ok = True
        for repo, backup_path in reversed(replaced):
            try:
                repo.restore_backup(backup_path)
            except OSError as e:
                ok = False
                logger.critical("No se pudo restaurar %s desde %s: %s",
                                repo.name, backup_path, e)
        return ok

    def _run_callbacks(self) -> None:
        for callback in self._callbacks:
            try:
                callback()
            except Exception:
                # Los cambios ya están confirmados; un fallo aquí no los revierte
                logger.exception("Fallo en callback posterior al commit")

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Registra una función a ejecutar solo si la transacción se confirma."""
        self._callbacks.append(callback)

    # =========================================================================
    # ACCESO A DATOS
    # =========================================================================

    def _table(self, repo: DictRepository) -> Dict[int, Dict[str, Any]]:
        if not self._active:
            raise RuntimeError("TransactionScope usado fuera de un bloque with")
        if repo not in self._staged:
            self._staged[repo] = copy.deepcopy(repo.load())
        return self._staged[repo]

    def _mark_dirty(self, repo: DictRepository) -> None:
        if repo not in self._dirty:
            self._dirty.append(repo)

    def get(self, repo: DictRepository, record_id: int) -> Optional[Dict[str, Any]]:
        """Copia del registro dentro de la transacción, o None."""
        record = self._table(repo).get(int(record_id))
        return copy.deepcopy(record) if record is not None else None

    def put(self, repo: DictRepository, record_id: int, data: Dict[str, Any]) -> None:
        self._table(repo)[int(record_id)] = data
        self._mark_dirty(repo)

    def delete(self, repo: DictRepository, record_id: int) -> Optional[Dict[str, Any]]:
        removed = self._table(repo).pop(int(record_id), None)
        if removed is not None:
            self._mark_dirty(repo)
        return removed

    def items(self, repo: DictRepository) -> Iterator[Tuple[int, Dict[str, Any]]]:
        for record_id, data in list(self._table(repo).items()):
            yield record_id, copy.deepcopy(data)

    def next_id(self, repo: DictRepository) -> int:
        return repo.get_next_id(self._table(repo))


@contextmanager
def transaction(scope: Optional[TransactionScope] = None):
    """
    Abre un TransactionScope propio o se une al recibido.

    Args:
        scope: Alcance externo (ej: el del motor de pedidos) o None
    """
    if scope is not None:
        yield scope
    else:
        with TransactionScope() as tx:
            yield tx

"""
engine.py — El publish engine: docs locales → commit en gh-pages.

Flujo de cada intento:
    1. FETCHING         → traer solo el tip del branch destino (shallow)
    2. REBUILDING_TREE  → árbol viejo − sub_path (− index.html) + docs locales
    3. COMMITTING       → un solo commit, con el tip anterior como padre
    4. PUSHING          → push sin force
    5. DONE

Si el push es rechazado por non-fast-forward (otro job de CI ganó la
carrera) pasamos a RETRYING y volvemos a FETCHING con el tip nuevo.
Es el único error que se reintenta, y solo max_attempts veces en total.
Auth, rechazo por política o fallos de red → FAILED de inmediato.

Invariante: nada fuera de sub_path (y fuera del index.html raíz si
clobber_index) se pierde. Cada publicación es incremental.

Si el árbol resultante es idéntico al anterior no se crea commit ni
se hace push: el resultado vuelve con commit=None y changed=False.

Uso:
    with GitPythonBackend() as backend:
        engine = PublishEngine(backend, max_attempts=3)
        result = engine.publish(request)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable

from docupload.publishing.backend import (
    EXECUTABLE_MODE,
    FILE_MODE,
    GitBackend,
    TreeEntry,
)
from docupload.publishing.errors import ConfigurationFault, PublishError, RaceConflict
from docupload.publishing.request import ROOT_INDEX, PublishRequest
from docupload.utils.logger import get_logger

logger = get_logger("docupload.engine")

TOTAL_STEPS = 4


class PublishState(Enum):
    """Estados del engine durante una invocación."""
    IDLE = "idle"
    FETCHING = "fetching"
    REBUILDING_TREE = "rebuilding_tree"
    COMMITTING = "committing"
    PUSHING = "pushing"
    RETRYING = "retrying"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PublishResult:
    """
    Resultado de una publicación.

    Campos:
        branch: Branch destino
        sub_path: Ruta normalizada dentro del branch
        commit: SHA del commit nuevo (None si no hubo cambios)
        previous_tip: Tip del branch antes de publicar (None si no existía)
        attempts: Intentos usados (1 = sin carreras)
        created_branch: True si el branch se creó en esta publicación
        changed: False si el árbol quedó idéntico (no-op)
        pushed: True si el commit llegó al remoto (False en dry-run / no-op)
        states: Transiciones de la máquina de estados, en orden
    """
    branch: str
    sub_path: str = ""
    commit: str | None = None
    previous_tip: str | None = None
    attempts: int = 0
    created_branch: bool = False
    changed: bool = True
    pushed: bool = False
    states: list[PublishState] = field(default_factory=list)


# ============================================================
# Construcción del árbol (funciones puras)
# ============================================================

def collect_local_files(local_docs: Path) -> list[tuple[str, Path, str]]:
    """
    Lista los archivos de la documentación local.

    Returns:
        Lista ordenada de (ruta_relativa_posix, ruta_en_disco, modo_git).
        Se ignora cualquier cosa dentro de un directorio .git.
        Los directorios que son symlinks no se recorren (con advertencia).
    """
    archivos = []
    for ruta in sorted(local_docs.rglob("*")):
        relativa = ruta.relative_to(local_docs)
        if ".git" in relativa.parts:
            continue
        if ruta.is_symlink() and ruta.is_dir():
            logger.warning(f"{relativa.as_posix()} es un symlink a un directorio; se omite")
            continue
        if not ruta.is_file():
            continue
        modo = EXECUTABLE_MODE if ruta.stat().st_mode & 0o111 else FILE_MODE
        archivos.append((relativa.as_posix(), ruta, modo))
    return archivos


def _under(path: str, sub_path: str) -> bool:
    return path == sub_path or path.startswith(sub_path + "/")


def rebuild_entries(
    existing: dict[str, TreeEntry],
    sub_path: str,
    docs: dict[str, TreeEntry],
    clobber_index: bool = False,
) -> dict[str, TreeEntry]:
    """
    Calcula el árbol nuevo del branch destino.

    Se conserva todo lo existente excepto:
    - lo que está en sub_path (se reemplaza completo por `docs`)
    - el index.html de la raíz, si clobber_index
    - un archivo cuya ruta sea un ancestro de sub_path (ocuparía
      el lugar del directorio)

    Args:
        existing: Árbol actual {ruta: TreeEntry}.
        sub_path: Ruta normalizada destino.
        docs: Docs locales {ruta_relativa: TreeEntry}.
        clobber_index: Borrar index.html de la raíz.
    """
    nuevo: dict[str, TreeEntry] = {}
    for path, entry in existing.items():
        if _under(path, sub_path):
            continue
        if clobber_index and path == ROOT_INDEX:
            continue
        if sub_path.startswith(path + "/"):
            logger.warning(f"El archivo {path} ocupa la ruta de {sub_path}; se reemplaza")
            continue
        nuevo[path] = entry

    for relativa, entry in docs.items():
        nuevo[f"{sub_path}/{relativa}"] = entry
    return nuevo


# ============================================================
# Engine
# ============================================================

class PublishEngine:
    """
    Publica un directorio de docs en un branch con reintentos acotados.

    Args:
        backend: Implementación de GitBackend (real o en memoria).
        max_attempts: Intentos totales ante carreras non-fast-forward.
        retry_delay: Espera base entre reintentos (se duplica cada vez).
        dry_run: Si True, crea el commit localmente pero no hace push.
        sleep: Función de espera (inyectable para tests).
    """

    def __init__(
        self,
        backend: GitBackend,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        dry_run: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ConfigurationFault(f"max_attempts debe ser >= 1 (recibido {max_attempts})")
        self._backend = backend
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._dry_run = dry_run
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def publish(self, request: PublishRequest) -> PublishResult:
        """
        Ejecuta la publicación completa.

        Args:
            request: Descripción de la publicación.

        Returns:
            PublishResult con el commit nuevo (o commit=None si no hubo cambios).

        Raises:
            ConfigurationFault: Request inválida (docs inexistentes, sub-path vacío...).
            RaceConflict: Se agotaron los intentos ante pushes concurrentes.
            AuthFault, RemoteRejected, TransportFault: Fallos no reintentables.
        """
        req = request.validate()
        result = PublishResult(branch=req.target_branch, sub_path=req.sub_path)
        self._transition(result, PublishState.IDLE)

        logger.info(
            f"Publicando {req.local_docs} → {req.target_branch}:{req.sub_path}/ "
            f"en {req.remote.redacted()}"
        )
        docs = self._stage_local_docs(req.local_docs)

        intento = 0
        while True:
            intento += 1
            result.attempts = intento
            try:
                self._attempt(req, docs, result)
            except RaceConflict as e:
                if intento >= self._max_attempts:
                    self._transition(result, PublishState.FAILED)
                    logger.error(f"Push rechazado {intento} veces; se agotaron los reintentos")
                    raise RaceConflict(
                        f"Push rechazado por non-fast-forward tras {intento} intentos",
                        e.detail,
                    ) from e
                self._transition(result, PublishState.RETRYING)
                espera = self._retry_delay * (2 ** (intento - 1))
                logger.warning(
                    f"{req.remote.scrub(e.message)}. Reintentando en {espera:g}s "
                    f"(intento {intento + 1}/{self._max_attempts})"
                )
                self._sleep(espera)
                continue
            except PublishError:
                self._transition(result, PublishState.FAILED)
                raise

            self._transition(result, PublishState.DONE)
            return result

    # ============================================================
    # Pasos internos
    # ============================================================

    def _transition(self, result: PublishResult, state: PublishState) -> None:
        result.states.append(state)
        logger.debug(f"estado → {state.value}")

    def _stage_local_docs(self, local_docs: Path) -> dict[str, TreeEntry]:
        """Guarda los docs locales como blobs una sola vez para todos los intentos."""
        archivos = collect_local_files(local_docs)
        if not archivos:
            logger.warning(f"{local_docs} está vacío: el sub-path quedará vacío")
        shas = self._backend.store_blobs([ruta for _, ruta, _ in archivos])
        logger.debug(f"{len(archivos)} archivos de documentación preparados")
        return {
            relativa: TreeEntry(mode=modo, sha=sha)
            for (relativa, _, modo), sha in zip(archivos, shas)
        }

    def _attempt(
        self,
        req: PublishRequest,
        docs: dict[str, TreeEntry],
        result: PublishResult,
    ) -> None:
        """Un ciclo fetch → rebuild → commit → push."""
        self._transition(result, PublishState.FETCHING)
        logger.step(1, TOTAL_STEPS, f"Fetching {req.target_branch}")
        tip = self._backend.fetch_branch(req.remote.url, req.target_branch)
        result.previous_tip = tip
        if tip is None:
            logger.info(f"El branch {req.target_branch} no existe; se creará sin historia")

        self._transition(result, PublishState.REBUILDING_TREE)
        logger.step(2, TOTAL_STEPS, f"Reconstruyendo árbol ({req.sub_path}/)")
        existente = self._backend.read_tree(tip) if tip else {}
        nuevo = rebuild_entries(existente, req.sub_path, docs, req.clobber_index)

        if tip is not None and nuevo == existente:
            result.commit = None
            result.changed = False
            result.created_branch = False
            result.pushed = False
            logger.info("La documentación no cambió; no hay nada que publicar")
            return

        self._transition(result, PublishState.COMMITTING)
        tree = self._backend.write_tree(nuevo)
        commit = self._backend.commit(tree, tip, req.commit_message)
        logger.step(3, TOTAL_STEPS, f"Commit {commit[:7]}: {req.commit_message}")

        result.commit = commit
        result.changed = True
        result.created_branch = tip is None

        if self._dry_run:
            result.pushed = False
            logger.info("Dry-run: se omite el push")
            return

        self._transition(result, PublishState.PUSHING)
        logger.step(4, TOTAL_STEPS, f"Push a {req.target_branch}")
        self._backend.push_branch(req.remote.url, commit, req.target_branch)
        result.pushed = True

"""
request.py — PublishRequest: una publicación, descrita como valor.

Se construye una sola vez por invocación (desde la CLI/config/CI),
se le pasa al engine y se descarta. El engine no hace lookups de
entorno: todo lo que necesita viaja aquí.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from docupload.config import DEFAULT_COMMIT_MESSAGE
from docupload.publishing.credentials import RemoteDescriptor
from docupload.publishing.errors import ConfigurationFault

ROOT_INDEX = "index.html"


def normalize_sub_path(sub_path: str) -> str:
    """
    Normaliza el sub-path destino a una ruta POSIX relativa.

    Quita separadores al inicio/final. Rechaza rutas vacías, "." y
    componentes "..": una ruta vacía reemplazaría el branch completo.

    Raises:
        ConfigurationFault: Si la ruta no es válida.
    """
    limpio = sub_path.replace("\\", "/").strip("/")
    partes = [p for p in PurePosixPath(limpio).parts if p != "."] if limpio else []
    if not partes:
        raise ConfigurationFault(f"Sub-path inválido: {sub_path!r} (no puede estar vacío)")
    if ".." in partes:
        raise ConfigurationFault(f"Sub-path inválido: {sub_path!r} (no puede contener '..')")
    return "/".join(partes)


def local_docs_dir(
    target: str | None = None,
    docs_dir: str | None = None,
    target_dir: str = "target",
) -> Path:
    """
    Ubica el directorio local de documentación.

    --docs-dir gana; si no, target/<triple>/doc con --target,
    o target/doc sin él.
    """
    if docs_dir:
        return Path(docs_dir)
    if target:
        return Path(target_dir) / target / "doc"
    return Path(target_dir) / "doc"


@dataclass(frozen=True)
class PublishRequest:
    """
    Descripción inmutable de un intento de publicación.

    Campos:
        remote: Remoto autenticado
        target_branch: Branch destino (se crea si no existe)
        sub_path: Ruta dentro del branch donde van los docs
        local_docs: Directorio local con la documentación ya construida
        commit_message: Mensaje del commit
        clobber_index: Borrar index.html de la raíz en el mismo commit
    """
    remote: RemoteDescriptor
    target_branch: str
    sub_path: str
    local_docs: Path
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    clobber_index: bool = False

    def validate(self) -> PublishRequest:
        """
        Verifica la request y devuelve una copia normalizada.

        Raises:
            ConfigurationFault: Si algo no cuadra.
        """
        if not self.commit_message.strip():
            raise ConfigurationFault("El mensaje de commit no puede estar vacío")
        if not self.target_branch.strip():
            raise ConfigurationFault("El branch destino no puede estar vacío")

        docs = Path(self.local_docs)
        if not docs.exists():
            raise ConfigurationFault(
                f"No se encontró la documentación en: {docs}\n"
                "¿Se ejecutó el build de docs antes de publicar?"
            )
        if not docs.is_dir():
            raise ConfigurationFault(f"La ruta de docs no es un directorio: {docs}")
        if not os.access(docs, os.R_OK | os.X_OK):
            raise ConfigurationFault(f"Sin permisos de lectura sobre: {docs}")

        return PublishRequest(
            remote=self.remote,
            target_branch=self.target_branch.strip(),
            sub_path=normalize_sub_path(self.sub_path),
            local_docs=docs,
            commit_message=self.commit_message,
            clobber_index=self.clobber_index,
        )

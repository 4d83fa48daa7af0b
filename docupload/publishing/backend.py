"""
backend.py — Las operaciones git que necesita el publish engine.

El engine no habla con git directamente: usa la interfaz GitBackend,
que expone solo lo necesario (fetch, leer árbol, escribir árbol,
commit, push). Así la lógica de merge y reintentos se prueba contra
un backend en memoria, sin un git real.

GitPythonBackend es la implementación real. Trabaja en un repo
scratch dentro de un directorio temporal y usa solo plumbing
(ls-tree, update-index, write-tree, commit-tree): nunca hace checkout,
así que el branch destino jamás se materializa en disco.

Uso:
    with GitPythonBackend(author_name="Docs Bot") as backend:
        tip = backend.fetch_branch(remote_url, "gh-pages")
        entries = backend.read_tree(tip) if tip else {}
"""

from __future__ import annotations

import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import git as gitpython

from docupload.publishing.errors import (
    AuthFault,
    PublishError,
    RaceConflict,
    RemoteRejected,
    TransportFault,
)
from docupload.utils.logger import get_logger

logger = get_logger("docupload.backend")

FILE_MODE = "100644"
EXECUTABLE_MODE = "100755"

# Ref local donde queda el tip remoto tras el fetch
FETCH_REF = "refs/remotes/docupload/{branch}"

_MISSING_BRANCH_MARKERS = (
    "couldn't find remote ref",
    "could not find remote ref",
)

_REMOTE_REJECTED_MARKERS = (
    "[remote rejected]",
    "pre-receive hook declined",
    "protected branch",
)

_RACE_MARKERS = (
    "non-fast-forward",
    "fetch first",
    "[rejected]",
    "stale info",
)

_AUTH_MARKERS = (
    "authentication failed",
    "could not read username",
    "could not read password",
    "permission denied",
    "invalid username or password",
    "the requested url returned error: 401",
    "the requested url returned error: 403",
    "repository not found",
    "host key verification failed",
)


@dataclass(frozen=True)
class TreeEntry:
    """Una entrada del árbol: modo git + SHA del objeto."""
    mode: str
    sha: str


def classify_git_error(error: gitpython.GitCommandError, action: str) -> PublishError:
    """
    Traduce un GitCommandError a la taxonomía de PublishError.

    Args:
        error: Error de GitPython (con stdout/stderr del comando).
        action: Qué se estaba haciendo ("fetch", "push"...), para el mensaje.

    Returns:
        RemoteRejected, RaceConflict, AuthFault o TransportFault.
    """
    salida = f"{error.stdout or ''}\n{error.stderr or ''}"
    texto = salida.lower()

    if any(m in texto for m in _REMOTE_REJECTED_MARKERS):
        return RemoteRejected(f"El remoto rechazó el {action}", salida.strip())
    if action == "push" and any(m in texto for m in _RACE_MARKERS):
        return RaceConflict(
            "Push rechazado (non-fast-forward): otro job publicó primero",
            salida.strip(),
        )
    if any(m in texto for m in _AUTH_MARKERS):
        return AuthFault(f"El remoto rechazó las credenciales durante el {action}", salida.strip())
    return TransportFault(f"git {action} falló", salida.strip())


class GitBackend(ABC):
    """
    Capacidades git mínimas del publish engine.

    Todas las operaciones lanzan PublishError ante un fallo
    (nunca GitCommandError crudo).
    """

    @abstractmethod
    def store_blobs(self, files: list[Path]) -> list[str]:
        """Guarda el contenido de cada archivo y devuelve sus SHAs (mismo orden)."""
        ...

    @abstractmethod
    def fetch_branch(self, remote: str, branch: str) -> str | None:
        """Trae el tip de `branch`. None si el branch no existe en el remoto."""
        ...

    @abstractmethod
    def read_tree(self, commit: str) -> dict[str, TreeEntry]:
        """Lista recursiva del árbol de `commit`: {ruta: TreeEntry}."""
        ...

    @abstractmethod
    def write_tree(self, entries: dict[str, TreeEntry]) -> str:
        """Construye un árbol con exactamente estas entradas. Devuelve su SHA."""
        ...

    @abstractmethod
    def commit(self, tree: str, parent: str | None, message: str) -> str:
        """Crea un commit (sin padre si parent es None). Devuelve su SHA."""
        ...

    @abstractmethod
    def push_branch(self, remote: str, commit: str, branch: str) -> None:
        """Push sin force de `commit` a refs/heads/`branch`."""
        ...


class GitPythonBackend(GitBackend):
    """
    Backend real: repo scratch temporal manejado con GitPython.

    Se usa como context manager; al salir (con o sin error) el
    directorio temporal se borra.

    Args:
        author_name: Autor/committer de los commits de docs.
        author_email: Email del autor/committer.
        fetch_depth: Profundidad del fetch (0 = historia completa).
    """

    def __init__(
        self,
        author_name: str = "docupload",
        author_email: str = "docupload@users.noreply.github.com",
        fetch_depth: int = 1,
    ):
        self._author_name = author_name
        self._author_email = author_email
        self._fetch_depth = fetch_depth
        self._tmp: tempfile.TemporaryDirectory | None = None
        self._repo: gitpython.Repo | None = None

    def __enter__(self) -> GitPythonBackend:
        self._tmp = tempfile.TemporaryDirectory(prefix="docupload-")
        self._repo = gitpython.Repo.init(self._tmp.name)
        self._repo.git.update_environment(
            GIT_AUTHOR_NAME=self._author_name,
            GIT_AUTHOR_EMAIL=self._author_email,
            GIT_COMMITTER_NAME=self._author_name,
            GIT_COMMITTER_EMAIL=self._author_email,
            GIT_TERMINAL_PROMPT="0",
        )
        logger.debug(f"Repo scratch en {self._tmp.name}")
        return self

    def __exit__(self, *exc_info) -> None:
        if self._repo is not None:
            self._repo.close()
            self._repo = None
        if self._tmp is not None:
            self._tmp.cleanup()
            self._tmp = None

    @property
    def repo(self) -> gitpython.Repo:
        if self._repo is None:
            raise RuntimeError("GitPythonBackend debe usarse dentro de un bloque 'with'")
        return self._repo

    def _scratch_file(self, name: str) -> Path:
        return Path(self.repo.git_dir) / name

    def _local(self, action: str, *args, **kwargs) -> str:
        """Ejecuta un comando git local; los fallos se reportan como TransportFault."""
        try:
            return getattr(self.repo.git, action)(*args, **kwargs)
        except gitpython.GitCommandError as e:
            comando = action.replace("_", "-")
            raise TransportFault(f"git {comando} falló", (e.stderr or "").strip()) from e

    def store_blobs(self, files: list[Path]) -> list[str]:
        if not files:
            return []
        lista = self._scratch_file("docupload-paths")
        lista.write_text(
            "".join(f"{Path(f).resolve()}\n" for f in files), encoding="utf-8"
        )
        with open(lista, "rb") as entrada:
            salida = self._local(
                "hash_object", "-w", "--no-filters", "--stdin-paths", istream=entrada
            )
        shas = salida.split()
        if len(shas) != len(files):
            raise TransportFault(
                f"hash-object devolvió {len(shas)} SHAs para {len(files)} archivos"
            )
        return shas

    def fetch_branch(self, remote: str, branch: str) -> str | None:
        ref = FETCH_REF.format(branch=branch)
        args = ["--no-tags"]
        if self._fetch_depth > 0:
            args.append(f"--depth={self._fetch_depth}")
        try:
            self.repo.git.fetch(*args, remote, f"+refs/heads/{branch}:{ref}")
        except gitpython.GitCommandError as e:
            if any(m in (e.stderr or "").lower() for m in _MISSING_BRANCH_MARKERS):
                logger.debug(f"El branch {branch} no existe en el remoto")
                return None
            raise classify_git_error(e, "fetch") from e
        return self._local("rev_parse", ref)

    def read_tree(self, commit: str) -> dict[str, TreeEntry]:
        salida = self._local("ls_tree", "-r", "-z", "--full-tree", commit)
        entries: dict[str, TreeEntry] = {}
        for registro in salida.split("\0"):
            if not registro:
                continue
            meta, _, path = registro.partition("\t")
            mode, _tipo, sha = meta.split()
            entries[path] = TreeEntry(mode=mode, sha=sha)
        return entries

    def write_tree(self, entries: dict[str, TreeEntry]) -> str:
        info = self._scratch_file("docupload-index-info")
        with open(info, "wb") as f:
            for path in sorted(entries):
                entry = entries[path]
                f.write(f"{entry.mode} {entry.sha}\t{path}\0".encode("utf-8"))

        self._local("read_tree", "--empty")
        with open(info, "rb") as entrada:
            self._local("update_index", "-z", "--index-info", istream=entrada)
        return self._local("write_tree")

    def commit(self, tree: str, parent: str | None, message: str) -> str:
        args = ["--no-gpg-sign"]
        if parent:
            args += ["-p", parent]
        return self._local("commit_tree", *args, "-m", message, tree)

    def push_branch(self, remote: str, commit: str, branch: str) -> None:
        try:
            self.repo.git.push("--porcelain", remote, f"{commit}:refs/heads/{branch}")
        except gitpython.GitCommandError as e:
            raise classify_git_error(e, "push") from e

"""
conftest.py — Fixtures compartidas.

FakeBackend implementa GitBackend en memoria: hace de repo scratch y
de remoto a la vez. Permite inyectar errores de push y simular otro
job de CI que publica justo antes que nosotros.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Callable

import pytest

from docupload.publishing.backend import FILE_MODE, GitBackend, TreeEntry
from docupload.publishing.credentials import RemoteDescriptor
from docupload.publishing.errors import PublishError, RaceConflict


class FakeBackend(GitBackend):
    """Backend git en memoria para probar el engine sin git real."""

    def __init__(self):
        self.blobs: dict[str, bytes] = {}
        self.trees: dict[str, dict[str, TreeEntry]] = {}
        self.commits: dict[str, dict] = {}
        self.branches: dict[str, str] = {}
        self.push_errors: list[PublishError] = []
        self.fetch_errors: list[PublishError] = []
        self.before_push: list[Callable[[], None]] = []
        self.fetches = 0
        self.pushes: list[tuple[str, str]] = []

    # --- GitBackend ---

    def store_blobs(self, files: list[Path]) -> list[str]:
        return [self._store(Path(f).read_bytes()) for f in files]

    def fetch_branch(self, remote: str, branch: str) -> str | None:
        self.fetches += 1
        if self.fetch_errors:
            raise self.fetch_errors.pop(0)
        return self.branches.get(branch)

    def read_tree(self, commit: str) -> dict[str, TreeEntry]:
        return dict(self.trees[self.commits[commit]["tree"]])

    def write_tree(self, entries: dict[str, TreeEntry]) -> str:
        clave = "\n".join(f"{p} {e.mode} {e.sha}" for p, e in sorted(entries.items()))
        sha = hashlib.sha1(clave.encode()).hexdigest()
        self.trees[sha] = dict(entries)
        return sha

    def commit(self, tree: str, parent: str | None, message: str) -> str:
        semilla = f"{tree}:{parent}:{message}:{len(self.commits)}"
        sha = hashlib.sha1(semilla.encode()).hexdigest()
        self.commits[sha] = {"tree": tree, "parent": parent, "message": message}
        return sha

    def push_branch(self, remote: str, commit: str, branch: str) -> None:
        if self.before_push:
            self.before_push.pop(0)()
        if self.push_errors:
            raise self.push_errors.pop(0)
        if self.branches.get(branch) != self.commits[commit]["parent"]:
            raise RaceConflict("non-fast-forward")
        self.branches[branch] = commit
        self.pushes.append((branch, commit))

    # --- Helpers para tests ---

    def _store(self, content: bytes) -> str:
        sha = hashlib.sha1(content).hexdigest()
        self.blobs[sha] = content
        return sha

    def seed(self, branch: str, files: dict[str, bytes], message: str = "seed") -> str:
        """Crea un commit con `files` y lo pone como tip de `branch`."""
        entries = {
            path: TreeEntry(FILE_MODE, self._store(content))
            for path, content in files.items()
        }
        commit = self.commit(self.write_tree(entries), self.branches.get(branch), message)
        self.branches[branch] = commit
        return commit

    def files(self, branch: str) -> dict[str, bytes]:
        """Contenido del tip de `branch`: {ruta: bytes}."""
        tree = self.read_tree(self.branches[branch])
        return {path: self.blobs[entry.sha] for path, entry in tree.items()}


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def remote():
    return RemoteDescriptor("https://s3cr3t@github.com/owner/repo.git", authenticated=True)


@pytest.fixture
def make_docs(tmp_path):
    """Crea un directorio de docs con los archivos indicados."""
    def _make(files: dict[str, str], name: str = "doc") -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root
    return _make

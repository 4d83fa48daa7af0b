"""
test_backend.py — Tests del backend GitPython contra un git real.

El "remoto" es un repo bare en tmp_path, así que no hay red.
Requieren el binario git en el PATH.
"""

from __future__ import annotations

import shutil
from pathlib import Path
import git
import pytest

from docupload.publishing.backend import (
    FILE_MODE,
    GitPythonBackend,
    TreeEntry,
    classify_git_error,
)
from docupload.publishing.credentials import RemoteDescriptor
from docupload.publishing.engine import PublishEngine
from docupload.publishing.errors import (
    AuthFault,
    RaceConflict,
    RemoteRejected,
    TransportFault,
)
from docupload.publishing.request import PublishRequest

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git no disponible")


def _configure_identity(repo: git.Repo) -> None:
    with repo.config_writer() as cw:
        cw.set_value("user", "name", "Seed")
        cw.set_value("user", "email", "seed@example.com")
        cw.set_value("commit", "gpgsign", "false")


@pytest.fixture
def bare_remote(tmp_path):
    path = tmp_path / "remote.git"
    git.Repo.init(path, bare=True)
    return path


@pytest.fixture
def seed_branch(tmp_path, bare_remote):
    """Publica archivos iniciales en un branch del remoto."""
    def _seed(files: dict[str, str], branch: str = "gh-pages") -> str:
        work = tmp_path / f"seed-{branch}-{len(list(tmp_path.iterdir()))}"
        repo = git.Repo.init(work)
        _configure_identity(repo)
        try:
            repo.git.fetch(bare_remote.as_uri(), f"refs/heads/{branch}")
            repo.git.checkout("-B", branch, "FETCH_HEAD")
        except git.GitCommandError:
            repo.git.symbolic_ref("HEAD", f"refs/heads/{branch}")
        for rel, content in files.items():
            target = work / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        repo.git.add("--all")
        repo.git.commit("-m", "seed")
        repo.git.push(bare_remote.as_uri(), f"HEAD:refs/heads/{branch}")
        sha = repo.head.commit.hexsha
        repo.close()
        return sha
    return _seed


def _entry(sha: str) -> TreeEntry:
    return TreeEntry(FILE_MODE, sha)


def _remote_files(bare_remote, branch: str = "gh-pages") -> dict[str, str]:
    repo = git.Repo(bare_remote)
    try:
        nombres = repo.git.ls_tree("-r", "--name-only", branch).splitlines()
        return {n: repo.git.show(f"{branch}:{n}") for n in nombres}
    finally:
        repo.close()


def _request(bare_remote, docs, sub_path="master", clobber_index=False):
    return PublishRequest(
        remote=RemoteDescriptor(bare_remote.as_uri()),
        target_branch="gh-pages",
        sub_path=sub_path,
        local_docs=docs,
        commit_message="Automatic Travis documentation build",
        clobber_index=clobber_index,
    )


class TestGitPythonBackend:
    """Operaciones sueltas del backend."""

    def test_fetch_branch_inexistente(self, bare_remote):
        with GitPythonBackend() as backend:
            assert backend.fetch_branch(bare_remote.as_uri(), "gh-pages") is None

    def test_fetch_y_read_tree(self, bare_remote, seed_branch):
        tip = seed_branch({"index.html": "hola", "dev/a.html": "a"})
        with GitPythonBackend() as backend:
            assert backend.fetch_branch(bare_remote.as_uri(), "gh-pages") == tip
            entries = backend.read_tree(tip)
        assert set(entries) == {"index.html", "dev/a.html"}
        assert entries["index.html"].mode == "100644"

    def test_write_tree_y_commit_sin_padre(self, make_docs):
        docs = make_docs({"index.html": "x"})
        with GitPythonBackend() as backend:
            [sha] = backend.store_blobs([docs / "index.html"])
            tree = backend.write_tree({"master/index.html": _entry(sha)})
            commit = backend.commit(tree, None, "mensaje")
            assert backend.read_tree(commit) == {"master/index.html": _entry(sha)}
            assert backend.repo.commit(commit).parents == ()
            assert backend.repo.commit(commit).message.strip() == "mensaje"
            assert backend.repo.commit(commit).author.name == "docupload"

    def test_limpia_el_directorio_temporal(self):
        with GitPythonBackend() as backend:
            ruta = backend.repo.working_tree_dir
        assert not Path(ruta).exists()

    def test_limpia_tambien_con_error(self):
        with pytest.raises(RuntimeError):
            with GitPythonBackend() as backend:
                ruta = backend.repo.working_tree_dir
                raise RuntimeError("boom")
        assert not Path(ruta).exists()

    def test_fuera_del_with_falla(self):
        with pytest.raises(RuntimeError):
            GitPythonBackend().repo

    def test_push_non_fast_forward_es_race(self, bare_remote, seed_branch, make_docs):
        seed_branch({"index.html": "v1"})
        docs = make_docs({"index.html": "x"})
        with GitPythonBackend() as backend:
            tip = backend.fetch_branch(bare_remote.as_uri(), "gh-pages")
            [sha] = backend.store_blobs([docs / "index.html"])
            commit = backend.commit(backend.write_tree({"a.html": _entry(sha)}), tip, "m")

            seed_branch({"otro.html": "v2"})  # otro job gana la carrera

            with pytest.raises(RaceConflict):
                backend.push_branch(bare_remote.as_uri(), commit, "gh-pages")

    def test_remoto_inalcanzable_es_transport(self, tmp_path):
        with GitPythonBackend() as backend:
            with pytest.raises(TransportFault):
                backend.fetch_branch((tmp_path / "no-existe.git").as_uri(), "gh-pages")


class TestEngineConGitReal:
    """El engine completo contra un remoto bare."""

    def test_crea_gh_pages_con_solo_los_docs(self, bare_remote, make_docs):
        docs = make_docs({"index.html": "<h1>x</h1>"})
        with GitPythonBackend() as backend:
            result = PublishEngine(backend).publish(_request(bare_remote, docs))

        assert result.created_branch
        assert _remote_files(bare_remote) == {"master/index.html": "<h1>x</h1>"}

    def test_merge_incremental(self, bare_remote, seed_branch, make_docs):
        seed_branch({
            "index.html": "landing",
            "dev/index.html": "dev",
            "master/stale.html": "stale",
        })
        docs = make_docs({"index.html": "nuevo", "src/lib.rs.html": "src"})
        with GitPythonBackend() as backend:
            PublishEngine(backend).publish(_request(bare_remote, docs, clobber_index=True))

        assert _remote_files(bare_remote) == {
            "dev/index.html": "dev",
            "master/index.html": "nuevo",
            "master/src/lib.rs.html": "src",
        }

    def test_segunda_publicacion_identica_no_crea_commit(self, bare_remote, make_docs):
        docs = make_docs({"index.html": "x"})
        with GitPythonBackend() as backend:
            PublishEngine(backend).publish(_request(bare_remote, docs))
        with GitPythonBackend() as backend:
            result = PublishEngine(backend).publish(_request(bare_remote, docs))

        assert not result.changed
        repo = git.Repo(bare_remote)
        assert int(repo.git.rev_list("--count", "gh-pages")) == 1
        repo.close()

    def test_historia_lineal(self, bare_remote, seed_branch, make_docs):
        tip = seed_branch({"CNAME": "docs.example.com"})
        with GitPythonBackend() as backend:
            result = PublishEngine(backend).publish(
                _request(bare_remote, make_docs({"index.html": "x"}))
            )
        repo = git.Repo(bare_remote)
        assert [p.hexsha for p in repo.commit(result.commit).parents] == [tip]
        repo.close()


class TestClassifyGitError:
    """Traducción de la salida de git a la taxonomía de errores."""

    def _error(self, stderr="", stdout=""):
        return git.GitCommandError(["git", "push"], 1, stderr=stderr, stdout=stdout)

    def test_fetch_first(self):
        e = self._error(stdout="!\tHEAD:refs/heads/gh-pages\t[rejected] (fetch first)")
        assert isinstance(classify_git_error(e, "push"), RaceConflict)

    def test_non_fast_forward(self):
        e = self._error(stderr="! [rejected] gh-pages -> gh-pages (non-fast-forward)")
        assert isinstance(classify_git_error(e, "push"), RaceConflict)

    def test_hook_rechazado(self):
        e = self._error(stderr="! [remote rejected] gh-pages (pre-receive hook declined)")
        assert isinstance(classify_git_error(e, "push"), RemoteRejected)

    def test_credenciales_invalidas(self):
        e = self._error(stderr="remote: Invalid username or password.\nfatal: Authentication failed")
        assert isinstance(classify_git_error(e, "push"), AuthFault)

    def test_ssh_sin_permiso(self):
        e = self._error(stderr="git@github.com: Permission denied (publickey).")
        assert isinstance(classify_git_error(e, "fetch"), AuthFault)

    def test_red_caida(self):
        e = self._error(stderr="fatal: unable to access: Could not resolve host: github.com")
        error = classify_git_error(e, "fetch")
        assert isinstance(error, TransportFault)
        assert "Could not resolve host" in error.detail

    def test_rejected_en_fetch_no_es_race(self):
        e = self._error(stderr="! [rejected] gh-pages -> docupload/gh-pages (non-fast-forward)")
        assert isinstance(classify_git_error(e, "fetch"), TransportFault)

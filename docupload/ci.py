"""
ci.py — Lee el contexto del job de CI desde variables de entorno.

Proveedores soportados:
    travis → TRAVIS_BRANCH, TRAVIS_PULL_REQUEST, TRAVIS_REPO_SLUG
    github → GITHUB_REF_NAME / GITHUB_HEAD_REF, GITHUB_EVENT_NAME,
             GITHUB_REPOSITORY

Con provider="auto" se usa GitHub Actions si GITHUB_ACTIONS=true,
y Travis en cualquier otro caso.

Este es el único lugar que lee el entorno del CI: el resto del código
recibe un CIContext ya resuelto.

Uso:
    from docupload.ci import load_ci_context
    ctx = load_ci_context(os.environ, provider="auto")
    print(ctx.branch, ctx.is_pull_request, ctx.slug)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from docupload.publishing.errors import ConfigurationFault

PROVIDERS = ("auto", "travis", "github")

_GITHUB_PR_EVENTS = {"pull_request", "pull_request_target"}


@dataclass(frozen=True)
class CIContext:
    """
    Datos del build actual.

    Campos:
        branch: Branch que se está construyendo
        is_pull_request: True si el build es de un PR
        slug: "owner/repo"
        provider: Proveedor del que salieron los datos
    """
    branch: str
    is_pull_request: bool
    slug: str
    provider: str


def _require(env: Mapping[str, str], name: str) -> str:
    """Lee una variable obligatoria o lanza ConfigurationFault."""
    valor = env.get(name)
    if valor is None:
        raise ConfigurationFault(f"${name} not set")
    return valor


def _travis_context(env: Mapping[str, str]) -> CIContext:
    branch = _require(env, "TRAVIS_BRANCH")
    pull_request = _require(env, "TRAVIS_PULL_REQUEST")
    slug = _require(env, "TRAVIS_REPO_SLUG")
    # Travis pone el número del PR, o "false" si no es un PR
    return CIContext(
        branch=branch,
        is_pull_request=pull_request != "false",
        slug=slug,
        provider="travis",
    )


def _github_context(env: Mapping[str, str]) -> CIContext:
    event = _require(env, "GITHUB_EVENT_NAME")
    slug = _require(env, "GITHUB_REPOSITORY")
    is_pr = event in _GITHUB_PR_EVENTS
    if is_pr and env.get("GITHUB_HEAD_REF"):
        branch = env["GITHUB_HEAD_REF"]
    else:
        branch = _require(env, "GITHUB_REF_NAME")
    return CIContext(branch=branch, is_pull_request=is_pr, slug=slug, provider="github")


def detect_provider(env: Mapping[str, str]) -> str:
    """Devuelve "github" si corremos en GitHub Actions, si no "travis"."""
    if env.get("GITHUB_ACTIONS", "").lower() == "true":
        return "github"
    return "travis"


def load_ci_context(env: Mapping[str, str], provider: str = "auto") -> CIContext:
    """
    Construye el CIContext del proveedor indicado.

    Args:
        env: Variables de entorno (normalmente os.environ).
        provider: "auto", "travis" o "github".

    Raises:
        ConfigurationFault: Proveedor desconocido o falta una variable.
    """
    if provider not in PROVIDERS:
        raise ConfigurationFault(
            f"Proveedor de CI desconocido: {provider!r} (opciones: {', '.join(PROVIDERS)})"
        )
    if provider == "auto":
        provider = detect_provider(env)

    if provider == "github":
        return _github_context(env)
    return _travis_context(env)

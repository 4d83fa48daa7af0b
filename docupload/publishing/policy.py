"""
policy.py — ¿Debe este job de CI publicar documentación?

Función pura sobre el contexto de CI: no lee variables de entorno
ni toca la red. Un "skip" no es un error; la CLI lo reporta como
mensaje informativo y termina con exit 0.

Uso:
    from docupload.publishing.policy import evaluate
    decision = evaluate({"master"}, "feature-x", False)
    if decision.should_publish:
        ...
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

DEFAULT_BRANCHES = frozenset({"master"})


class SkipReason(Enum):
    """Por qué no se publica en esta invocación."""
    NOT_ALLOWED_BRANCH = "not_allowed_branch"
    IS_PULL_REQUEST = "is_pull_request"


@dataclass(frozen=True)
class Decision:
    """
    Resultado de la política de publicación.

    Campos:
        should_publish: True si hay que publicar.
        reason: Motivo del skip (None si se publica).
        sub_path: Ruta destino dentro del branch (solo si se publica).
    """
    should_publish: bool
    reason: SkipReason | None = None
    sub_path: str | None = None

    @classmethod
    def proceed(cls, sub_path: str) -> Decision:
        return cls(should_publish=True, sub_path=sub_path)

    @classmethod
    def skip(cls, reason: SkipReason) -> Decision:
        return cls(should_publish=False, reason=reason)


def evaluate(
    allowed_branches: Iterable[str] | None,
    current_branch: str,
    is_pull_request: bool,
    path_override: str | None = None,
) -> Decision:
    """
    Decide si se publica.

    Args:
        allowed_branches: Branches habilitados. Vacío o None → {"master"}.
            Un string suelto cuenta como un solo branch.
        current_branch: Branch que está construyendo el CI.
        is_pull_request: True si el build es de un PR.
        path_override: Sub-path explícito (--path). Si no, el branch actual.

    Returns:
        Decision.proceed(sub_path) o Decision.skip(reason).
    """
    if isinstance(allowed_branches, str):
        allowed_branches = [allowed_branches]
    allowed = frozenset(allowed_branches or ()) or DEFAULT_BRANCHES

    if not current_branch or current_branch not in allowed:
        return Decision.skip(SkipReason.NOT_ALLOWED_BRANCH)

    if is_pull_request:
        return Decision.skip(SkipReason.IS_PULL_REQUEST)

    return Decision.proceed(path_override or current_branch)

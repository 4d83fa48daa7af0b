"""
credentials.py — Construye la URL autenticada del remoto.

Orden de prioridad del token:
    1. --token (flag explícita)
    2. $GH_TOKEN
    3. Sin token → endpoint SSH (git@host:slug.git), con advertencia

La URL con token nunca se imprime: para logs se usa redacted().

Uso:
    from docupload.publishing.credentials import resolve_remote
    remote = resolve_remote("owner/repo", token=cli_token, env_token=config.token)
    logger.info(f"Remoto: {remote.redacted()}")
"""

from __future__ import annotations

from dataclasses import dataclass

from docupload.utils.logger import get_logger

logger = get_logger("docupload.credentials")

DEFAULT_HOST = "github.com"


@dataclass(frozen=True)
class RemoteDescriptor:
    """
    Remoto git al que se publica.

    Campos:
        url: URL utilizable como remoto de git (HTTPS con token o SSH)
        authenticated: True si la URL lleva un token embebido
    """
    url: str
    authenticated: bool = False

    def redacted(self) -> str:
        """URL segura para logs (token reemplazado por ***)."""
        if not self.authenticated or "@" not in self.url:
            return self.url
        scheme, _, rest = self.url.partition("://")
        _, _, host_path = rest.partition("@")
        return f"{scheme}://***@{host_path}"

    def scrub(self, text: str) -> str:
        """Reemplaza la URL con token por su forma redactada dentro de `text`."""
        if not self.authenticated:
            return text
        return text.replace(self.url, self.redacted())

    def __str__(self) -> str:
        return self.redacted()


def authenticated_url(slug: str, token: str, host: str = DEFAULT_HOST) -> str:
    """URL HTTPS con token embebido: https://<token>@host/<slug>.git"""
    return f"https://{token}@{host}/{slug}.git"


def ssh_url(slug: str, host: str = DEFAULT_HOST) -> str:
    """URL SSH: git@host:<slug>.git"""
    return f"git@{host}:{slug}.git"


def resolve_remote(
    slug: str,
    token: str | None = None,
    env_token: str | None = None,
    host: str = DEFAULT_HOST,
) -> RemoteDescriptor:
    """
    Resuelve el remoto autenticado para el repo `slug`.

    Args:
        slug: "owner/repo"
        token: Token pasado por --token (prioridad).
        env_token: Token de $GH_TOKEN.
        host: Host de git (default github.com).

    Returns:
        RemoteDescriptor listo para usar como remoto.
    """
    elegido = token or env_token
    if elegido:
        return RemoteDescriptor(authenticated_url(slug, elegido, host), authenticated=True)

    logger.warning("GitHub Personal Access Token was not provided in $GH_TOKEN or --token")
    logger.warning("Falling back to using the SSH endpoint")
    return RemoteDescriptor(ssh_url(slug, host), authenticated=False)

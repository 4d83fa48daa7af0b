"""
config.py — Carga y gestiona la configuración de docupload.

Se encarga de:
1. Cargar .env (secretos: GH_TOKEN)
2. Cargar docupload.yaml (configuración versionada del proyecto)
3. Resolver variables de entorno en los valores de config
4. Convertir cada sección a su dataclass

Todo es opcional: sin docupload.yaml se usan los valores por defecto,
que reproducen el comportamiento clásico (master → gh-pages).
Las flags de la CLI tienen prioridad sobre este archivo.

Ejemplo de docupload.yaml:
    publish:
      branches: [master, release]
      deploy_branch: gh-pages
      clobber_index: true
    git:
      author_name: "Docs Bot"
    ci:
      provider: github

Uso:
    from docupload.config import load_config
    config = load_config()
    print(config.publish.deploy_branch)  # "gh-pages"
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from docupload.publishing.errors import ConfigurationFault

CONFIG_FILENAME = "docupload.yaml"

DEFAULT_COMMIT_MESSAGE = "Automatic Travis documentation build"


# ============================================================
# Dataclasses de configuración
# ============================================================

@dataclass
class PublishConfig:
    """Qué se publica, desde dónde y hacia qué branch."""
    branches: list[str] = field(default_factory=lambda: ["master"])
    deploy_branch: str = "gh-pages"
    message: str = DEFAULT_COMMIT_MESSAGE
    path: str = ""
    docs_dir: str = ""
    target_dir: str = "target"
    clobber_index: bool = False
    max_attempts: int = 3
    retry_delay: float = 1.0
    fetch_depth: int = 1


@dataclass
class GitConfig:
    """Configuración de Git y del host remoto."""
    host: str = "github.com"
    author_name: str = "docupload"
    author_email: str = "docupload@users.noreply.github.com"


@dataclass
class CIConfig:
    """Proveedor de CI: auto, travis o github."""
    provider: str = "auto"


@dataclass
class AppConfig:
    """Configuración completa de la aplicación."""
    publish: PublishConfig = field(default_factory=PublishConfig)
    git: GitConfig = field(default_factory=GitConfig)
    ci: CIConfig = field(default_factory=CIConfig)

    # Valores del entorno (no están en el YAML)
    token: str = ""


# ============================================================
# Funciones de carga
# ============================================================

def _resolve_env_vars(value: str) -> str:
    """
    Resuelve variables de entorno en un string.

    Ejemplo:
        "${DOCS_BRANCH}" → "gh-pages"

    Si la variable no existe, el placeholder se deja tal cual.
    """
    patron = re.compile(r"\$\{(\w+)\}")

    def reemplazar(match: re.Match) -> str:
        return os.environ.get(match.group(1), match.group(0))

    return patron.sub(reemplazar, value)


def _resolve_env_recursive(data: Any) -> Any:
    """Resuelve variables de entorno recursivamente en un dict/list."""
    if isinstance(data, str):
        return _resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_recursive(item) for item in data]
    return data


_BOOL_VALUES = {
    "true": True, "yes": True, "on": True, "1": True,
    "false": False, "no": False, "off": False, "0": False,
}


def _coerce(nombre: str, valor: Any, tipo: str) -> Any:
    """
    Convierte un valor del YAML al tipo declarado en la dataclass.

    Los valores que llegan vía ${VAR} son siempre strings, así que
    "false" tiene que terminar siendo False y "3" terminar siendo 3.

    Raises:
        ConfigurationFault: Si el valor no se puede convertir.
    """
    try:
        if tipo == "bool":
            if isinstance(valor, bool):
                return valor
            clave = str(valor).strip().lower()
            if clave not in _BOOL_VALUES:
                raise ValueError(valor)
            return _BOOL_VALUES[clave]
        if tipo == "int":
            if isinstance(valor, bool):
                raise ValueError(valor)
            return int(str(valor).strip())
        if tipo == "float":
            if isinstance(valor, bool):
                raise ValueError(valor)
            return float(str(valor).strip())
        if tipo == "list[str]":
            # Un escalar se toma como lista de un elemento
            if isinstance(valor, (list, tuple)):
                return [str(item) for item in valor]
            if isinstance(valor, (dict, bool)) or valor is None:
                raise ValueError(valor)
            return [str(valor)]
        if tipo == "str":
            if isinstance(valor, (dict, list)):
                raise ValueError(valor)
            return "" if valor is None else str(valor)
    except (TypeError, ValueError):
        raise ConfigurationFault(
            f"Valor inválido para '{nombre}': {valor!r} (se esperaba {tipo})"
        ) from None
    return valor


def _dict_to_dataclass(data: dict, cls: type, section: str = "") -> Any:
    """
    Convierte un diccionario a una dataclass, ignorando keys desconocidas.

    Cada valor se convierte al tipo declarado en el campo.

    Raises:
        ConfigurationFault: Si la sección no es un mapping o un valor
            no tiene el tipo correcto.
    """
    if not isinstance(data, dict):
        raise ConfigurationFault(f"La sección '{section}' debe ser un mapping")
    campos = {f.name: f.type for f in fields(cls)}
    return cls(**{
        k: _coerce(f"{section}.{k}" if section else k, v, campos[k])
        for k, v in data.items()
        if k in campos
    })


def _find_config_dir() -> Path:
    """
    Encuentra el directorio raíz del proyecto (donde está docupload.yaml).

    Busca hacia arriba desde el directorio actual. Si no lo encuentra,
    usa el directorio actual.
    """
    current = Path.cwd()
    for parent in [current] + list(current.parents):
        if (parent / CONFIG_FILENAME).exists():
            return parent
    return current


def load_config(config_path: Path | None = None) -> AppConfig:
    """
    Carga la configuración completa de docupload.

    Pasos:
    1. Carga .env para tener las variables de entorno disponibles
    2. Lee docupload.yaml
    3. Resuelve ${VARIABLES} en los valores del YAML
    4. Convierte cada sección a su dataclass correspondiente
    5. Agrega el token del entorno (GH_TOKEN)

    Args:
        config_path: Ruta al YAML. Si es None, busca automáticamente.

    Returns:
        AppConfig lista para usar.

    Raises:
        FileNotFoundError: Si config_path se pasó explícitamente y no existe.
        yaml.YAMLError: Si el YAML está mal formado.
        ConfigurationFault: Si un valor no tiene el tipo esperado.
    """
    # Paso 1: Cargar .env
    proyecto_dir = _find_config_dir()
    env_path = proyecto_dir / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    # Paso 2: Leer docupload.yaml
    if config_path is None:
        config_path = proyecto_dir / CONFIG_FILENAME
        if not config_path.exists():
            app_config = AppConfig()
            app_config.token = os.environ.get("GH_TOKEN", "")
            return app_config
    elif not config_path.exists():
        raise FileNotFoundError(f"No se encontró el archivo de config: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f) or {}

    # Paso 3: Resolver variables de entorno
    config_resuelto = _resolve_env_recursive(raw_config)
    if not isinstance(config_resuelto, dict):
        raise ConfigurationFault(f"{config_path} debe contener un mapping de secciones")

    # Paso 4: Convertir cada sección a su dataclass
    app_config = AppConfig(
        publish=_dict_to_dataclass(
            config_resuelto.get("publish") or {}, PublishConfig, "publish"
        ),
        git=_dict_to_dataclass(
            config_resuelto.get("git") or {}, GitConfig, "git"
        ),
        ci=_dict_to_dataclass(
            config_resuelto.get("ci") or {}, CIConfig, "ci"
        ),
    )

    # Paso 5: Agregar valores del entorno
    app_config.token = os.environ.get("GH_TOKEN", "")

    return app_config

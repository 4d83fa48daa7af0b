"""
logger.py — Logging de docupload usando Rich + archivo opcional.

Dual output:
- Rich console: colores en la terminal del job de CI. Los mensajes
  informativos van a stdout; advertencias y errores a stderr.
- Archivo rotativo: solo si DOCUPLOAD_LOG_DIR está definido, para
  guardar el log como artifact del job.

Los mensajes debug solo se muestran en modo verbose
(--verbose o DOCUPLOAD_DEBUG=1).

Uso:
    from docupload.utils.logger import get_logger
    logger = get_logger("docupload.engine")
    logger.info("Fetching gh-pages...")
    logger.success("Documentación publicada")
    logger.error("git push falló")
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.theme import Theme

# NOTA: en pytest no se escribe ningún archivo de log
_in_pytest = "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ

docupload_theme = Theme({
    "info": "cyan",
    "success": "bold green",
    "warning": "bold yellow",
    "error": "bold red",
    "debug": "dim",
    "step": "bold magenta",
})

# Consolas globales — se usan en todo el proyecto
console = Console(theme=docupload_theme, highlight=False)
err_console = Console(theme=docupload_theme, stderr=True, highlight=False)

_verbose = os.environ.get("DOCUPLOAD_DEBUG", "") not in ("", "0", "false")

# ================================================================
# File logging setup
# ================================================================

_file_logger: logging.Logger | None = None


def set_verbose(enabled: bool) -> None:
    """Activa o desactiva los mensajes debug en consola."""
    global _verbose
    _verbose = enabled


def is_verbose() -> bool:
    return _verbose


def _setup_file_logger() -> logging.Logger:
    """Configura el logger de archivo con rotacion."""
    global _file_logger
    if _file_logger is not None:
        return _file_logger

    log_dir = os.environ.get("DOCUPLOAD_LOG_DIR", "")

    if _in_pytest or not log_dir:
        _file_logger = logging.getLogger("docupload.null")
        _file_logger.addHandler(logging.NullHandler())
        _file_logger.propagate = False
        return _file_logger

    Path(log_dir).mkdir(parents=True, exist_ok=True)

    _file_logger = logging.getLogger("docupload.file")
    _file_logger.setLevel(logging.DEBUG)
    _file_logger.propagate = False

    # Evitar handlers duplicados
    if not _file_logger.handlers:
        handler = RotatingFileHandler(
            Path(log_dir) / "docupload.log",
            maxBytes=5 * 1024 * 1024,  # 5 MB
            backupCount=3,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        _file_logger.addHandler(handler)

    return _file_logger


class DocUploadLogger:
    """
    Logger que usa Rich para la consola + archivo opcional.

    Cada módulo crea su propio logger con un nombre para
    identificar de dónde viene cada mensaje en el archivo.

    Args:
        name: Nombre del módulo (ej: "docupload.engine")
    """

    def __init__(self, name: str):
        self._name = name
        self._file = _setup_file_logger()

    def info(self, message: str) -> None:
        """Mensaje informativo (cyan)."""
        console.print(f"[info]{escape(message)}[/info]")
        self._file.info(f"[{self._name}] {message}")

    def success(self, message: str) -> None:
        """Mensaje de éxito (verde)."""
        console.print(f"[success][OK] {escape(message)}[/success]")
        self._file.info(f"[{self._name}] OK: {message}")

    def warning(self, message: str) -> None:
        """Mensaje de advertencia (amarillo, stderr)."""
        err_console.print(f"[warning][!] {escape(message)}[/warning]")
        self._file.warning(f"[{self._name}] {message}")

    def error(self, message: str) -> None:
        """Mensaje de error (rojo, stderr)."""
        err_console.print(f"[error][X] {escape(message)}[/error]")
        self._file.error(f"[{self._name}] {message}")

    def debug(self, message: str) -> None:
        """Mensaje de depuración, solo visible en modo verbose."""
        if _verbose:
            err_console.print(f"[debug]{self._name}: {escape(message)}[/debug]")
        self._file.debug(f"[{self._name}] {message}")

    def step(self, number: int, total: int, message: str) -> None:
        """Mensaje de paso en un proceso (magenta)."""
        console.print(f"[step]  [{number}/{total}] {escape(message)}[/step]")
        self._file.info(f"[{self._name}] [{number}/{total}] {message}")


def get_logger(name: str = "docupload") -> DocUploadLogger:
    """
    Obtiene un logger para el módulo especificado.

    Args:
        name: Nombre del módulo.

    Returns:
        DocUploadLogger configurado.
    """
    return DocUploadLogger(name)

"""
errors.py — Taxonomía de errores del publish engine.

Todos los fallos del engine llegan al caller como una sola familia
de excepciones (PublishError), cada una con su tipo (ErrorKind),
un mensaje legible y un exit code para el proceso.

Tipos:
    ConfigurationFault → falta una variable de CI, docs inexistentes...
    AuthFault          → el remoto rechazó las credenciales
    RaceConflict       → push rechazado por non-fast-forward (se reintenta)
    TransportFault     → fallo de red / IO durante fetch o push
    RemoteRejected     → el remoto rechazó el push (hook, branch protegido)

Un "skip" por política (branch no permitido, PR) NO es un error:
se modela con Decision en policy.py.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Tipo de fallo, usado para mapear a exit codes."""
    CONFIGURATION = "configuration"
    AUTH = "auth"
    RACE = "race"
    TRANSPORT = "transport"
    REJECTED = "rejected"


EXIT_CODES: dict[ErrorKind, int] = {
    ErrorKind.CONFIGURATION: 3,
    ErrorKind.AUTH: 4,
    ErrorKind.RACE: 5,
    ErrorKind.TRANSPORT: 6,
    ErrorKind.REJECTED: 7,
}


class PublishError(Exception):
    """
    Error base del publish engine.

    Args:
        message: Mensaje legible para el usuario.
        detail: Salida cruda de git u otro contexto (opcional).
    """

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(self, message: str, detail: str = ""):
        super().__init__(message)
        self.message = message
        self.detail = detail

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.kind]

    @property
    def retryable(self) -> bool:
        return self.kind is ErrorKind.RACE

    def __str__(self) -> str:
        return self.message


class ConfigurationFault(PublishError):
    """Configuración inválida o incompleta. Fatal."""
    kind = ErrorKind.CONFIGURATION


class AuthFault(PublishError):
    """El remoto rechazó las credenciales. Fatal."""
    kind = ErrorKind.AUTH


class RaceConflict(PublishError):
    """Otro publisher movió el branch antes que nosotros."""
    kind = ErrorKind.RACE


class TransportFault(PublishError):
    """Fallo de red o IO durante fetch/push. Fatal."""
    kind = ErrorKind.TRANSPORT


class RemoteRejected(PublishError):
    """El remoto rechazó el push por política (hooks, protección)."""
    kind = ErrorKind.REJECTED

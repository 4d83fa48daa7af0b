"""
cli.py — Punto de entrada de docupload.

Sube la documentación ya construida (por defecto target/doc) a
GitHub Pages desde un job de CI.

Flujo:
    1. Cargar config (docupload.yaml + .env) y contexto del CI
    2. Política: ¿branch permitido y no es PR? Si no → skip, exit 0
    3. Resolver el remoto (--token, $GH_TOKEN o SSH)
    4. Publish engine → commit en el branch destino
    5. Resumen

Exit codes:
    0   publicado, sin cambios, o skip por política
    1   error inesperado
    2   error de uso de la CLI (Click)
    3-7 fallo del engine (ver publishing/errors.py)

Uso:
    docupload --branch master --branch release
    docupload --deploy gh-pages --path api --clobber-index
    docupload --target x86_64-unknown-linux-gnu --dry-run

    # Desde código (testing):
    from click.testing import CliRunner
    CliRunner().invoke(main, ["--branch", "master"])
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click
import yaml
from rich.markup import escape
from rich.panel import Panel

from docupload import __version__
from docupload.ci import load_ci_context
from docupload.config import load_config
from docupload.publishing.backend import GitPythonBackend
from docupload.publishing.credentials import resolve_remote
from docupload.publishing.engine import PublishEngine, PublishResult
from docupload.publishing.errors import EXIT_CODES, ErrorKind, PublishError
from docupload.publishing.policy import SkipReason, evaluate
from docupload.publishing.request import PublishRequest, local_docs_dir
from docupload.utils.logger import console as rich_console
from docupload.utils.logger import get_logger, is_verbose, set_verbose

logger = get_logger("docupload.cli")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "-V", "--version", prog_name="docupload")
@click.option(
    "--branch", "branches",
    multiple=True,
    help="Solo publicar para estos branches (repetible). Default: master",
)
@click.option(
    "--token",
    default=None,
    help="Token de GitHub. Si falta, se usa $GH_TOKEN y luego SSH",
)
@click.option("--message", default=None, help="Mensaje del commit")
@click.option("--deploy", default=None, help="Branch destino [default: gh-pages]")
@click.option(
    "--path",
    default=None,
    help="Ruta remota donde subir los docs (default: el branch actual)",
)
@click.option(
    "--clobber-index",
    is_flag=True,
    default=False,
    help="Borrar index.html de la raíz del branch destino",
)
@click.option("--target", default=None, help="Target triple: usa target/<TRIPLE>/doc")
@click.option(
    "--docs-dir",
    default=None,
    type=click.Path(file_okay=False),
    help="Directorio local de docs (tiene prioridad sobre --target)",
)
@click.option(
    "--max-attempts",
    default=None,
    type=click.IntRange(min=1),
    help="Intentos de push ante carreras con otros jobs [default: 3]",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Crea el commit localmente pero NO hace push",
)
@click.option(
    "--config", "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="Ruta a docupload.yaml",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Mensajes de depuración")
def main(
    branches: tuple[str, ...],
    token: str | None,
    message: str | None,
    deploy: str | None,
    path: str | None,
    clobber_index: bool,
    target: str | None,
    docs_dir: str | None,
    max_attempts: int | None,
    dry_run: bool,
    config_path: str | None,
    verbose: bool,
):
    """Sube la documentación construida a GitHub Pages."""
    set_verbose(verbose or is_verbose())
    secreto = token

    try:
        cfg = load_config(Path(config_path) if config_path else None)
        secreto = token or cfg.token
        ctx = load_ci_context(os.environ, cfg.ci.provider)
        logger.debug(f"CI: provider={ctx.provider} branch={ctx.branch} pr={ctx.is_pull_request}")

        decision = evaluate(
            list(branches) or cfg.publish.branches,
            ctx.branch,
            ctx.is_pull_request,
            path_override=path or cfg.publish.path or None,
        )
        if not decision.should_publish:
            if decision.reason is SkipReason.IS_PULL_REQUEST:
                logger.info("Skipping PR")
            else:
                logger.info(f"Skipping branch {ctx.branch}")
            return

        remote = resolve_remote(ctx.slug, token=token, env_token=cfg.token, host=cfg.git.host)
        request = PublishRequest(
            remote=remote,
            target_branch=deploy or cfg.publish.deploy_branch,
            sub_path=decision.sub_path,
            local_docs=local_docs_dir(
                target=target,
                docs_dir=docs_dir or cfg.publish.docs_dir or None,
                target_dir=cfg.publish.target_dir,
            ),
            commit_message=message or cfg.publish.message,
            clobber_index=clobber_index or cfg.publish.clobber_index,
        )

        with GitPythonBackend(
            author_name=cfg.git.author_name,
            author_email=cfg.git.author_email,
            fetch_depth=cfg.publish.fetch_depth,
        ) as backend:
            engine = PublishEngine(
                backend,
                max_attempts=max_attempts or cfg.publish.max_attempts,
                retry_delay=cfg.publish.retry_delay,
                dry_run=dry_run,
            )
            result = engine.publish(request)

        _show_summary(result, request)

    except PublishError as e:
        logger.error(_redact(e.message, secreto))
        if e.detail:
            logger.debug(_redact(e.detail, secreto))
        sys.exit(e.exit_code)
    except (FileNotFoundError, yaml.YAMLError) as e:
        logger.error(f"Configuración inválida: {e}")
        sys.exit(EXIT_CODES[ErrorKind.CONFIGURATION])
    except Exception as e:
        logger.error(f"Error inesperado: {_redact(str(e), secreto)}")
        sys.exit(1)


# ============================================================
# Funciones auxiliares (privadas)
# ============================================================

def _redact(text: str, token: str | None) -> str:
    """Quita el token de cualquier texto antes de mostrarlo."""
    if token:
        return text.replace(token, "***")
    return text


def _show_summary(result: PublishResult, request: PublishRequest) -> None:
    """Muestra resumen después de publicar."""
    if not result.changed:
        logger.success(f"{request.target_branch}:{result.sub_path}/ ya estaba al día")
        return

    estado = "publicado" if result.pushed else "commit local (dry-run)"
    rich_console.print(Panel(
        f"[bold]Branch:[/bold] {escape(request.target_branch)}"
        f"{' (nuevo)' if result.created_branch else ''}\n"
        f"[bold]Ruta:[/bold] {escape(result.sub_path)}/\n"
        f"[bold]Commit:[/bold] {(result.commit or '')[:7]}\n"
        f"[bold]Intentos:[/bold] {result.attempts}\n"
        f"[bold]Estado:[/bold] {estado}",
        title="Documentación",
        border_style="green" if result.pushed else "yellow",
    ))


if __name__ == "__main__":
    main()

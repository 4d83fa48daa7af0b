"""
docupload — Publica documentación generada en GitHub Pages desde CI.

Este paquete contiene:
- publishing/ → Política de publicación, credenciales y publish engine
- ci.py       → Contexto del job de CI (Travis, GitHub Actions)
- config.py   → Configuración (docupload.yaml + .env)
- utils/      → Utilidades compartidas (logging)

Uso:
    docupload --branch master --clobber-index
    python -m docupload --target x86_64-unknown-linux-gnu
"""

__version__ = "1.0.0"

"""
__main__.py — Permite ejecutar docupload como módulo.

    python -m docupload --branch master
"""

from docupload.cli import main

if __name__ == "__main__":
    main()

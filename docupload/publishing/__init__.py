"""
publishing/ — Todo lo relacionado con publicar la documentación.

Módulos:
- policy.py      → ¿Este job debe publicar? (branch permitido, no PR)
- credentials.py → URL autenticada del remoto (token o SSH)
- request.py     → PublishRequest: qué, dónde y cómo publicar
- backend.py     → Operaciones git (interfaz + implementación GitPython)
- engine.py      → Fetch → rebuild → commit → push, con reintentos
- errors.py      → Taxonomía de errores y exit codes
"""

"""
Integration tests for the extraction layer.

Run against real external services and are skipped when they are absent:
- Ollama provider (health check, end-to-end extraction)
- Redis session store (record lifecycle)
"""

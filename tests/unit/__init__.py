"""
Unit tests for the LLM Extraction Layer.

Test individual components in isolation:
- Validation (JSON parse, schema adapters, feedback and suggestions)
- Prompt builder and Ollama adapter
- Retry engine and recovery advisor
- Session stores and coordinator
- Configuration, result processing and orchestration
"""

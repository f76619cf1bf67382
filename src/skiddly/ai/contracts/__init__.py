"""Contratos Pydantic do ponto de LLM (classificação de ligações)."""

from skiddly.ai.contracts.classification import ClassificationRequest

__all__ = ["ClassificationRequest"]

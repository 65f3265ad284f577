# src/sigstruct/coercion/__init__.py
from .engine import TypeCoercionEngine

__all__ = ["TypeCoercionEngine"]

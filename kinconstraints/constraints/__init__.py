"""Implicit and explicit constraints."""

from .explicit import Explicit, ExplicitImplicitForm
from .implicit import Implicit

__all__ = [
    "Explicit",
    "ExplicitImplicitForm",
    "Implicit",
]

"""Graph payload models and validation."""

from .models import *  # noqa: F403
from .models import __all__ as _model_exports
from .validation import GraphResponseValidator, ValidationIssue

__all__ = [*_model_exports, "GraphResponseValidator", "ValidationIssue"]

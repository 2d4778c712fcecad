"""Phase template models and loader exports."""

from .loader import TemplateLoadError, TemplateLoader
from .models import PhaseTemplate

__all__ = [
    "PhaseTemplate",
    "TemplateLoadError",
    "TemplateLoader",
]

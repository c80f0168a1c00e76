"""Legal data source providers"""

from .base import Provider, error_result, json_result, text_result
from .registry import ProviderRegistry

__all__ = [
    "Provider",
    "ProviderRegistry",
    "error_result",
    "json_result",
    "text_result",
]

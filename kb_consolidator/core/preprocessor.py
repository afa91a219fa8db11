"""Text normalization applied before values are compared."""

from typing import Any, Dict, Type
from abc import ABC, abstractmethod


class BasePreprocessor(ABC):
    """Base class for preprocessors with common functionality."""

    @abstractmethod
    def process(self, value: Any) -> str:
        """Process a value into a standardized string format."""
        pass

    def _handle_null(self, value: Any) -> bool:
        """Check if value is null/empty."""
        return value is None


class TextPreprocessor(BasePreprocessor):
    """Trims surrounding whitespace and optionally lower-cases."""

    def __init__(self, lowercase: bool = True):
        self.lowercase = lowercase

    def process(self, value: Any) -> str:
        if self._handle_null(value):
            return ''

        text = str(value).strip()
        if self.lowercase:
            text = text.lower()
        return text


class HeaderPreprocessor(BasePreprocessor):
    """Normalizes CSV header cells (trimmed, case preserved)."""

    def process(self, value: Any) -> str:
        if self._handle_null(value):
            return ''
        return str(value).strip()


class PreprocessorRegistry:
    """Registry for preprocessor types and instances."""

    def __init__(self):
        self._preprocessors: Dict[str, Type[BasePreprocessor]] = {}
        self._register_defaults()

    def _register_defaults(self) -> None:
        """Register default preprocessors."""
        self.register('text', TextPreprocessor)
        self.register('header', HeaderPreprocessor)

    def register(self, name: str, preprocessor_class: Type[BasePreprocessor]) -> None:
        """
        Register a new preprocessor type.

        Args:
            name: Name to register the preprocessor under
            preprocessor_class: Preprocessor class to register
        """
        self._preprocessors[name] = preprocessor_class

    def create(self, name: str, **kwargs: Any) -> BasePreprocessor:
        """
        Create a preprocessor instance.

        Args:
            name: Name of the preprocessor type
            **kwargs: Configuration parameters for the preprocessor

        Returns:
            BasePreprocessor: Configured preprocessor instance

        Raises:
            ValueError: If preprocessor type not found
        """
        preprocessor_class = self._preprocessors.get(name)
        if not preprocessor_class:
            raise ValueError(f"Unknown preprocessor type: {name}")

        return preprocessor_class(**kwargs)


# Global registry instance
registry = PreprocessorRegistry()

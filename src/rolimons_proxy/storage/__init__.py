from .cache import ResultCache

__all__ = ["ResultCache"]

from .parser import RequestParser

__all__ = ["RequestParser"]

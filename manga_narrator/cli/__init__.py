"""
Typer + Rich CLI for Manga Narrator
"""
from .main import app

__all__ = ["app"]

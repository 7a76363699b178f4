# appforge/scaffold/__init__.py
"""
Renders the generated application's source tree.
"""
from .nextjs import NextAppScaffolder, Scaffolder

__all__ = ["NextAppScaffolder", "Scaffolder"]

# appforge/__init__.py
"""
AppForge - natural-language application builder and deployment orchestrator.
"""
__version__ = "0.1.0"

# appforge/api/__init__.py
"""
HTTP routes.
"""

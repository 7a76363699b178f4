# appforge/schema/__init__.py
"""
Schema IR, system catalog merge and structural repair.
"""
from .ir import EnumDef, Field, FieldKind, Model, Relation, Schema
from .parser import parse_schema
from .serializer import render_field, render_model, render_enum, render_schema
from .validation import validate_schema
from .catalog import SystemCatalog, default_catalog
from .merger import MergedSchema, merge_catalog
from .sanitizer import SanitizeAction, SanitizeResult, sanitize

__all__ = [
    "EnumDef",
    "Field",
    "FieldKind",
    "Model",
    "Relation",
    "Schema",
    "parse_schema",
    "render_field",
    "render_model",
    "render_enum",
    "render_schema",
    "validate_schema",
    "SystemCatalog",
    "default_catalog",
    "MergedSchema",
    "merge_catalog",
    "SanitizeAction",
    "SanitizeResult",
    "sanitize",
]

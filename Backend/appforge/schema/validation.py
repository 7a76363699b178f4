# appforge/schema/validation.py
"""
Structural checks over a parsed schema.
"""
from collections import Counter
from typing import List, Optional

from appforge.schema.ir import SCALAR_TYPES, Field, FieldKind, Model, Schema


def validate_schema(schema: Schema) -> List[str]:
    """
    Return a list of human-readable issues; empty means structurally valid.

    Checks:
    - model and enum names are unique
    - every model has exactly one identity (field-level @id or @@id)
    - identity fields are never optional
    - every field type is a scalar, an enum or a model in the schema
    - relation bindings name fields that exist on both sides
    - every relation field has an opposite field on its target model
    """
    issues: List[str] = []

    counts = Counter(schema.model_names + schema.enum_names)
    for name, count in counts.items():
        if count > 1:
            issues.append(f"Duplicate definition of '{name}' ({count} times)")

    for model in schema.models:
        ids = model.id_fields
        if model.has_compound_id:
            if ids:
                issues.append(f"Model '{model.name}' declares both @id and @@id")
        elif len(ids) == 0:
            issues.append(f"Model '{model.name}' has no @id field")
        elif len(ids) > 1:
            issues.append(f"Model '{model.name}' has {len(ids)} @id fields")

        for f in ids:
            if not f.is_required:
                issues.append(f"Identity field '{model.name}.{f.name}' must not be optional")

        for f in model.fields:
            if f.kind == FieldKind.SCALAR and f.type.split("(")[0] not in SCALAR_TYPES:
                issues.append(f"Field '{model.name}.{f.name}' references unknown type '{f.type}'")

            if f.kind == FieldKind.OBJECT and schema.model(f.type) is not None and not _has_opposite(schema, model, f):
                issues.append(f"Relation '{model.name}.{f.name}' has no opposite field on '{f.type}'")

            relation = f.relationship
            if relation is None or not relation.has_binding:
                continue
            for local in relation.fields:
                if model.field(local) is None:
                    issues.append(f"Relation '{model.name}.{f.name}' binds missing field '{local}'")
            target = schema.model(f.type)
            if target is None:
                continue
            for remote in relation.references:
                if target.field(remote) is None:
                    issues.append(f"Relation '{model.name}.{f.name}' references missing field '{f.type}.{remote}'")

    return issues


def _relation_name(f: Field) -> Optional[str]:
    return f.relationship.name if f.relationship else None


def _has_opposite(schema: Schema, model: Model, f: Field) -> bool:
    target = schema.model(f.type)
    name = _relation_name(f)
    for candidate in target.fields:
        if candidate is f or candidate.kind != FieldKind.OBJECT or candidate.type != model.name:
            continue
        if name is None or _relation_name(candidate) == name:
            return True
    return False

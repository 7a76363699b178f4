# appforge/schema/serializer.py
"""
Schema IR -> Prisma text.
"""
from typing import List

from appforge.schema.ir import EnumDef, Field, Model, Relation, Schema


def render_relation(relation: Relation) -> str:
    args: List[str] = []
    if relation.name:
        args.append(f'"{relation.name}"')
    if relation.fields:
        args.append(f"fields: [{', '.join(relation.fields)}]")
    if relation.references:
        args.append(f"references: [{', '.join(relation.references)}]")
    if relation.on_delete:
        args.append(f"onDelete: {relation.on_delete}")
    if relation.on_update:
        args.append(f"onUpdate: {relation.on_update}")
    args.extend(relation.extra)
    return f"@relation({', '.join(args)})"


def render_type(field: Field) -> str:
    if field.is_list:
        return f"{field.type}[]"
    if not field.is_required:
        return f"{field.type}?"
    return field.type


def render_field(field: Field) -> str:
    """Render one field line without indentation."""
    parts = [field.name, render_type(field)]
    if field.is_id:
        parts.append("@id")
    if field.default_value is not None:
        parts.append(f"@default({field.default_value})")
    if field.is_unique:
        parts.append("@unique")
    if field.relationship is not None:
        parts.append(render_relation(field.relationship))
    parts.extend(field.attributes)
    if field.comment:
        parts.append(field.comment)
    return " ".join(parts)


def render_model(model: Model, indent: str = "  ") -> str:
    lines: List[str] = []
    if model.description:
        lines.append(f"/// {model.description}")
    lines.append(f"model {model.name} {{")
    width = max((len(f.name) for f in model.fields), default=0)
    for f in model.fields:
        rendered = render_field(f)
        # Align types in a column the way `prisma format` does
        lines.append(f"{indent}{f.name.ljust(width)} {rendered[len(f.name) + 1:]}")
    if model.attributes:
        lines.append("")
        lines.extend(f"{indent}{attribute}" for attribute in model.attributes)
    lines.append("}")
    return "\n".join(lines)


def render_enum(enum: EnumDef, indent: str = "  ") -> str:
    lines: List[str] = []
    if enum.description:
        lines.append(f"/// {enum.description}")
    lines.append(f"enum {enum.name} {{")
    lines.extend(f"{indent}{value}" for value in enum.values)
    lines.append("}")
    return "\n".join(lines)


def render_schema(schema: Schema) -> str:
    blocks = [render_enum(e) for e in schema.enums]
    blocks.extend(render_model(m) for m in schema.models)
    return "\n\n".join(blocks) + "\n"

# appforge/schema/merger.py
"""
Append the system catalog to a generated schema.

The generated (business) text is kept verbatim; the catalog is rendered from
IR and appended between two marker comments. Nothing before the start marker
is ever re-serialized.
"""
from dataclasses import dataclass, field, replace
from typing import List, Optional

from appforge.core.logging import log
from appforge.schema.catalog import SystemCatalog, default_catalog
from appforge.schema.ir import EnumDef, FieldKind, Model
from appforge.schema.parser import parse_schema
from appforge.schema.serializer import render_enum, render_model


SYSTEM_BLOCK_START = "// ── System models (catalog v{version}) ──"
SYSTEM_BLOCK_END = "// ── End system models ──"
_START_PREFIX = "// ── System models"


@dataclass
class MergedSchema:
    text: str
    business_models: List[Model] = field(default_factory=list)
    business_enums: List[EnumDef] = field(default_factory=list)
    system_models: List[Model] = field(default_factory=list)
    system_enums: List[EnumDef] = field(default_factory=list)
    catalog_version: str = ""
    # Catalog entries skipped because the business schema already defines them
    collisions: List[str] = field(default_factory=list)

    @property
    def models(self) -> List[Model]:
        return self.business_models + self.system_models

    @property
    def enums(self) -> List[EnumDef]:
        return self.business_enums + self.system_enums

    @property
    def model_names(self) -> List[str]:
        return [m.name for m in self.models]


def strip_system_block(text: str) -> str:
    """Business part of a schema that may already carry a system block."""
    index = text.find(_START_PREFIX)
    if index == -1:
        return text
    return text[:index].rstrip() + "\n"


def merge_catalog(generated_text: str, catalog: Optional[SystemCatalog] = None) -> MergedSchema:
    """
    Merge business schema text with the system catalog.

    A business model or enum whose name matches a catalog entry wins: the
    catalog entry is left out of the block and reported as a collision.
    Kept catalog models drop their relation fields that point at a colliding
    business model, together with the foreign keys those relations bind.

    Raises:
        SchemaError if the business text cannot be parsed
    """
    catalog = catalog or default_catalog()
    business_text = strip_system_block(generated_text)
    business = parse_schema(business_text)

    taken = set(business.model_names) | set(business.enum_names)
    collisions = [
        name
        for name in [e.name for e in catalog.enums] + catalog.model_names
        if name in taken
    ]
    system_enums = [e for e in catalog.enums if e.name not in taken]
    system_models = [
        _detach(m, set(business.model_names), business.enums)
        for m in catalog.models
        if m.name not in taken
    ]

    if collisions:
        log("SCHEMA", f"⚠️ Business schema redefines system entities: {', '.join(collisions)}")

    blocks = [SYSTEM_BLOCK_START.format(version=catalog.version)]
    blocks.extend(render_enum(e) for e in system_enums)
    blocks.extend(render_model(m) for m in system_models)

    body = business_text.rstrip()
    text = (body + "\n\n" if body else "") + "\n\n".join(blocks) + "\n" + SYSTEM_BLOCK_END + "\n"

    log("SCHEMA", f"🧩 Merged {len(business.models)} business models with {len(system_models)} system models")

    return MergedSchema(
        text=text,
        business_models=business.models,
        business_enums=business.enums,
        system_models=system_models,
        system_enums=system_enums,
        catalog_version=catalog.version,
        collisions=collisions,
    )


def _detach(model: Model, business_models: set, business_enums: List[EnumDef]) -> Model:
    """Copy of a catalog model without references into business-owned types."""
    dropped = {
        f.name
        for f in model.fields
        if f.type in business_models and f.kind != FieldKind.SCALAR
    }
    if not dropped and not business_enums:
        return model

    bound = {
        fk
        for f in model.fields
        if f.name in dropped and f.relationship is not None
        for fk in f.relationship.fields
    }
    enum_values = {e.name: e.values for e in business_enums}

    fields = []
    for f in model.fields:
        if f.name in dropped or f.name in bound:
            continue
        # A business enum replacing a catalog enum may not hold the catalog default
        if f.kind == FieldKind.ENUM and f.type in enum_values and f.default_value not in enum_values[f.type]:
            f = replace(f, default_value=None)
        fields.append(f)

    if dropped:
        log("SCHEMA", f"✂️ {model.name}: dropped {', '.join(sorted(dropped | bound))} pointing at business models")
    return replace(model, fields=fields)

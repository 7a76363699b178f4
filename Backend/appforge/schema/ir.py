# appforge/schema/ir.py
"""
In-memory representation of a Prisma data schema.

The parser fills these from text and the serializer renders them back; the
merger and the repair rules work on them instead of on raw strings.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


SCALAR_TYPES = {
    "String",
    "Int",
    "BigInt",
    "Float",
    "Decimal",
    "Boolean",
    "DateTime",
    "Json",
    "Bytes",
    "Unsupported",
}


class FieldKind(str, Enum):
    """What a field's type refers to."""
    SCALAR = "scalar"
    ENUM = "enum"
    OBJECT = "object"


@dataclass
class Relation:
    """Arguments of an @relation(...) attribute."""
    name: Optional[str] = None
    fields: List[str] = field(default_factory=list)
    references: List[str] = field(default_factory=list)
    on_delete: Optional[str] = None
    on_update: Optional[str] = None
    # Remaining arguments (map:, ...) kept verbatim
    extra: List[str] = field(default_factory=list)

    @property
    def has_binding(self) -> bool:
        return bool(self.fields)


@dataclass
class Field:
    name: str
    type: str
    kind: FieldKind = FieldKind.SCALAR
    is_list: bool = False
    is_required: bool = True
    is_id: bool = False
    is_unique: bool = False
    default_value: Optional[str] = None
    relationship: Optional[Relation] = None
    # Other field attributes in source order, e.g. "@updatedAt", "@db.Text"
    attributes: List[str] = field(default_factory=list)
    comment: Optional[str] = None
    line_no: Optional[int] = None

    @property
    def is_relation(self) -> bool:
        return self.kind == FieldKind.OBJECT

    @property
    def is_optional(self) -> bool:
        return not self.is_required and not self.is_list


@dataclass
class Model:
    name: str
    fields: List[Field] = field(default_factory=list)
    description: str = ""
    # Block attributes such as "@@index([email])"
    attributes: List[str] = field(default_factory=list)
    line_no: Optional[int] = None

    def field(self, name: str) -> Optional[Field]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @property
    def id_fields(self) -> List[Field]:
        return [f for f in self.fields if f.is_id]

    @property
    def has_compound_id(self) -> bool:
        return any(a.startswith("@@id") for a in self.attributes)

    @property
    def relation_fields(self) -> List[Field]:
        return [f for f in self.fields if f.is_relation]


@dataclass
class EnumDef:
    name: str
    values: List[str] = field(default_factory=list)
    description: str = ""
    line_no: Optional[int] = None


@dataclass
class Schema:
    models: List[Model] = field(default_factory=list)
    enums: List[EnumDef] = field(default_factory=list)

    def model(self, name: str) -> Optional[Model]:
        for m in self.models:
            if m.name == name:
                return m
        return None

    def enum(self, name: str) -> Optional[EnumDef]:
        for e in self.enums:
            if e.name == name:
                return e
        return None

    @property
    def model_names(self) -> List[str]:
        return [m.name for m in self.models]

    @property
    def enum_names(self) -> List[str]:
        return [e.name for e in self.enums]

    def fields_by_line(self) -> Dict[int, Field]:
        return {
            f.line_no: f
            for m in self.models
            for f in m.fields
            if f.line_no is not None
        }

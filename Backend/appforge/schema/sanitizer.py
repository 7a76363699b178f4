# appforge/schema/sanitizer.py
"""
Structural repair of generated schemas.

The text is parsed into IR, each rule repairs the IR and reports what it
changed, and only the lines of changed fields are re-rendered. Every rule is
idempotent, so sanitize(sanitize(x).text) returns the same text.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

from appforge.core.logging import log
from appforge.schema.ir import Field, FieldKind, Model, Schema
from appforge.schema.parser import parse_schema
from appforge.schema.serializer import render_field


FOREIGN_KEY_NAME = re.compile(r"^\w+Id$")
FOREIGN_KEY_TYPES = {"String", "Int"}


@dataclass
class SanitizeAction:
    rule: str
    model: str
    field: str
    line_no: Optional[int]
    before: str
    after: str

    @property
    def message(self) -> str:
        return f"[{self.rule}] {self.model}.{self.field}: '{self.before}' -> '{self.after}'"


@dataclass
class SanitizeResult:
    text: str
    actions: List[SanitizeAction] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.actions)


class SanitizeRule:
    """Base repair rule. Subclasses mutate fields and record actions."""
    name = "rule"

    def apply(self, schema: Schema) -> List[SanitizeAction]:
        actions: List[SanitizeAction] = []
        for model in schema.models:
            for f in model.fields:
                before = render_field(f)
                if self.repair(schema, model, f):
                    actions.append(SanitizeAction(
                        rule=self.name,
                        model=model.name,
                        field=f.name,
                        line_no=f.line_no,
                        before=before,
                        after=render_field(f),
                    ))
        return actions

    def repair(self, schema: Schema, model: Model, f: Field) -> bool:
        raise NotImplementedError


class DropBrokenOneToOne(SanitizeRule):
    """
    A single-valued relation that owns its foreign key is one-to-one unless
    the other side holds a list back-reference. One-to-one needs a unique
    foreign key; without one the binding is dropped and the field becomes
    an optional reference.
    """
    name = "broken-one-to-one"

    def repair(self, schema: Schema, model: Model, f: Field) -> bool:
        relation = f.relationship
        if f.is_list or relation is None or not relation.has_binding:
            return False
        if f.kind != FieldKind.OBJECT:
            return False

        foreign_keys = [model.field(name) for name in relation.fields]
        if all(fk is not None and (fk.is_unique or fk.is_id) for fk in foreign_keys):
            return False
        if _has_list_back_reference(schema, model, f):
            return False

        f.relationship = None
        f.is_required = False
        return True


class OptionalForeignKeys(SanitizeRule):
    """
    `...Id` String/Int columns become optional (uniqueness kept). Relation
    fields bound to them follow, since a required relation cannot sit on an
    optional key.
    """
    name = "optional-foreign-key"

    def repair(self, schema: Schema, model: Model, f: Field) -> bool:
        if f.is_relation:
            relation = f.relationship
            if f.is_list or not f.is_required or relation is None or not relation.has_binding:
                return False
            keys = [model.field(name) for name in relation.fields]
            if any(_is_foreign_key(k) or (k is not None and not k.is_required) for k in keys):
                f.is_required = False
                return True
            return False

        if _is_foreign_key(f) and f.is_required:
            f.is_required = False
            return True
        return False


class RequiredIdentity(SanitizeRule):
    """Identity fields are never optional."""
    name = "required-identity"

    def repair(self, schema: Schema, model: Model, f: Field) -> bool:
        if f.is_id and not f.is_required and not f.is_list:
            f.is_required = True
            return True
        return False


DEFAULT_RULES: Sequence[SanitizeRule] = (
    DropBrokenOneToOne(),
    OptionalForeignKeys(),
    RequiredIdentity(),
)


def _is_foreign_key(f: Optional[Field]) -> bool:
    return (
        f is not None
        and not f.is_id
        and not f.is_list
        and f.type in FOREIGN_KEY_TYPES
        and bool(FOREIGN_KEY_NAME.match(f.name))
    )


def _has_list_back_reference(schema: Schema, model: Model, f: Field) -> bool:
    target = schema.model(f.type)
    if target is None:
        return False
    relation_name = f.relationship.name if f.relationship else None
    for other in target.fields:
        if other.type != model.name or not other.is_list:
            continue
        other_name = other.relationship.name if other.relationship else None
        if relation_name is None or other_name is None or relation_name == other_name:
            return True
    return False


def sanitize(text: str, rules: Sequence[SanitizeRule] = DEFAULT_RULES) -> SanitizeResult:
    """
    Repair relation and identity declarations in schema text.

    Args:
        text: Full schema text (business and system blocks together)
        rules: Repair rules, applied in order

    Returns:
        SanitizeResult with the patched text and one action per change
    """
    schema = parse_schema(text)

    actions: List[SanitizeAction] = []
    for rule in rules:
        actions.extend(rule.apply(schema))

    if not actions:
        return SanitizeResult(text=text)

    changed_lines: Set[int] = {a.line_no for a in actions if a.line_no is not None}
    by_line: Dict[int, Field] = schema.fields_by_line()
    lines = text.splitlines(keepends=True)

    for line_no in changed_lines:
        original = lines[line_no - 1]
        body = original.rstrip("\r\n")
        ending = original[len(body):]
        indent = body[: len(body) - len(body.lstrip())]
        lines[line_no - 1] = f"{indent}{render_field(by_line[line_no])}{ending}"

    for action in actions:
        log("SCHEMA", f"🔧 {action.message}")

    return SanitizeResult(text="".join(lines), actions=actions)

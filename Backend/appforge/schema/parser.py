# appforge/schema/parser.py
"""
Prisma schema text -> Schema IR.

Every field keeps the 1-based line number it came from so repairs can patch
exactly that line and leave the rest of the text alone.
"""
import re
from typing import List, Optional, Tuple

from appforge.core.exceptions import SchemaError
from appforge.schema.ir import EnumDef, Field, FieldKind, Model, Relation, Schema


BLOCK_START = re.compile(r"^\s*(model|enum|type|view|generator|datasource)\s+(\w+)\s*\{\s*(//.*)?$")
BLOCK_END = re.compile(r"^\s*\}\s*(//.*)?$")
FIELD_LINE = re.compile(r"^(\w+)\s+(\w+(?:\([^)]*\))?)(\[\]|\?)?\s*(.*)$")


def split_comment(line: str) -> Tuple[str, Optional[str]]:
    """Split `code // comment`, ignoring // inside string literals."""
    in_string = False
    for i, ch in enumerate(line):
        if ch == '"' and (i == 0 or line[i - 1] != "\\"):
            in_string = not in_string
        elif not in_string and line.startswith("//", i):
            return line[:i].rstrip(), line[i:]
    return line.rstrip(), None


def split_attributes(text: str) -> List[str]:
    """Split `@id @default(cuid()) @db.VarChar(20)` into its attributes."""
    attributes: List[str] = []
    current = ""
    depth = 0
    in_string = False

    for i, ch in enumerate(text):
        if ch == '"' and (i == 0 or text[i - 1] != "\\"):
            in_string = not in_string
        elif not in_string:
            if ch in "([":
                depth += 1
            elif ch in ")]":
                depth -= 1
            elif ch == "@" and depth == 0 and (i == 0 or text[i - 1].isspace()):
                if current.strip():
                    attributes.append(current.strip())
                current = ""
        current += ch

    if current.strip():
        attributes.append(current.strip())
    return attributes


def split_arguments(text: str) -> List[str]:
    """Split top-level comma separated arguments."""
    args: List[str] = []
    current = ""
    depth = 0
    in_string = False

    for i, ch in enumerate(text):
        if ch == '"' and (i == 0 or text[i - 1] != "\\"):
            in_string = not in_string
        elif not in_string:
            if ch in "([":
                depth += 1
            elif ch in ")]":
                depth -= 1
            elif ch == "," and depth == 0:
                args.append(current.strip())
                current = ""
                continue
        current += ch

    if current.strip():
        args.append(current.strip())
    return args


def _attribute_args(attribute: str) -> str:
    start = attribute.find("(")
    if start == -1 or not attribute.endswith(")"):
        return ""
    return attribute[start + 1:-1]


def _parse_list(value: str) -> List[str]:
    return [v.strip() for v in value.strip().strip("[]").split(",") if v.strip()]


def parse_relation(attribute: str) -> Relation:
    relation = Relation()
    for arg in split_arguments(_attribute_args(attribute)):
        if arg.startswith('"'):
            relation.name = arg.strip('"')
            continue
        key, sep, value = arg.partition(":")
        key, value = key.strip(), value.strip()
        if not sep:
            relation.extra.append(arg)
        elif key == "name":
            relation.name = value.strip('"')
        elif key == "fields":
            relation.fields = _parse_list(value)
        elif key == "references":
            relation.references = _parse_list(value)
        elif key == "onDelete":
            relation.on_delete = value
        elif key == "onUpdate":
            relation.on_update = value
        else:
            relation.extra.append(arg)
    return relation


def parse_field(line: str, line_no: int) -> Field:
    code, comment = split_comment(line.strip())
    match = FIELD_LINE.match(code)
    if not match:
        raise SchemaError(f"Cannot parse field definition '{code}'", line_no)

    name, type_name, modifier, rest = match.groups()
    f = Field(
        name=name,
        type=type_name,
        is_list=modifier == "[]",
        is_required=modifier != "?",
        comment=comment,
        line_no=line_no,
    )

    for attribute in split_attributes(rest):
        if attribute == "@id":
            f.is_id = True
        elif attribute == "@unique":
            f.is_unique = True
        elif attribute.startswith("@default("):
            f.default_value = _attribute_args(attribute)
        elif attribute.startswith("@relation"):
            f.relationship = parse_relation(attribute)
        else:
            f.attributes.append(attribute)
    return f


def parse_schema(text: str) -> Schema:
    """
    Parse Prisma schema text.

    generator/datasource/type/view blocks are skipped; model and enum blocks
    become IR. Field kinds are resolved once every block name is known.

    Raises:
        SchemaError on malformed field lines or unterminated blocks
    """
    schema = Schema()
    lines = text.splitlines()
    doc: List[str] = []
    i = 0

    while i < len(lines):
        line_no = i + 1
        stripped = lines[i].strip()

        if stripped.startswith("///"):
            doc.append(stripped[3:].strip())
            i += 1
            continue

        start = BLOCK_START.match(lines[i])
        if not start:
            if stripped and not stripped.startswith("//"):
                doc = []
            i += 1
            continue

        keyword, name = start.group(1), start.group(2)
        description = " ".join(doc)
        doc = []
        body: List[Tuple[int, str]] = []
        i += 1
        while i < len(lines) and not BLOCK_END.match(lines[i]):
            body.append((i + 1, lines[i]))
            i += 1
        if i >= len(lines):
            raise SchemaError(f"Block '{name}' is never closed", line_no)
        i += 1

        if keyword == "model":
            schema.models.append(_parse_model(name, description, line_no, body))
        elif keyword == "enum":
            schema.enums.append(_parse_enum(name, description, line_no, body))

    _resolve_kinds(schema)
    return schema


def _parse_model(name: str, description: str, line_no: int, body: List[Tuple[int, str]]) -> Model:
    model = Model(name=name, description=description, line_no=line_no)
    for number, raw in body:
        stripped = raw.strip()
        if not stripped or stripped.startswith("//"):
            continue
        if stripped.startswith("@@"):
            model.attributes.append(split_comment(stripped)[0])
            continue
        model.fields.append(parse_field(raw, number))
    return model


def _parse_enum(name: str, description: str, line_no: int, body: List[Tuple[int, str]]) -> EnumDef:
    enum = EnumDef(name=name, description=description, line_no=line_no)
    for _, raw in body:
        code = split_comment(raw.strip())[0]
        if not code or code.startswith("@@"):
            continue
        enum.values.append(code.split()[0])
    return enum


def _resolve_kinds(schema: Schema) -> None:
    models = set(schema.model_names)
    enums = set(schema.enum_names)
    for model in schema.models:
        for f in model.fields:
            if f.type in models:
                f.kind = FieldKind.OBJECT
            elif f.type in enums:
                f.kind = FieldKind.ENUM
            else:
                f.kind = FieldKind.SCALAR

# tests/test_schema_parser.py
"""
Schema text <-> IR, plus the structural validator.
"""
import pytest

from appforge.core.exceptions import SchemaError
from appforge.schema import (
    FieldKind,
    parse_schema,
    render_enum,
    render_field,
    render_schema,
    validate_schema,
)
from appforge.schema.parser import split_attributes, split_comment


class TestParse:

    def test_models_fields_and_relations(self, business_schema):
        schema = parse_schema(business_schema)

        assert schema.model_names == ["Project", "Task", "Tag"]
        task = schema.model("Task")
        project = task.field("project")
        assert project.kind == FieldKind.OBJECT
        assert project.relationship.fields == ["projectId"]
        assert project.relationship.references == ["id"]
        assert task.field("projectId").kind == FieldKind.SCALAR
        assert schema.model("Project").field("tasks").is_list

        tag = schema.model("Tag")
        assert tag.field("label").is_unique
        assert tag.field("taskId").is_optional
        assert tag.field("id").is_id
        assert tag.field("id").default_value == "cuid()"

    def test_doc_comment_becomes_description(self, business_schema):
        schema = parse_schema(business_schema)

        assert schema.model("Project").description == "A body of work"
        assert schema.model("Task").description == ""

    def test_line_numbers_point_at_source(self, business_schema):
        schema = parse_schema(business_schema)
        lines = business_schema.splitlines()

        for f in schema.model("Task").fields:
            assert lines[f.line_no - 1].strip().startswith(f.name)

    def test_enums_and_block_attributes(self):
        schema = parse_schema(
            'generator client {\n'
            '  provider = "prisma-client-js"\n'
            '}\n'
            '\n'
            'enum Status {\n'
            '  OPEN   // still running\n'
            '  CLOSED\n'
            '}\n'
            '\n'
            'model Ticket {\n'
            '  id     Int    @id @default(autoincrement())\n'
            '  status Status @default(OPEN)\n'
            '  body   String @db.Text\n'
            '\n'
            '  @@index([status])\n'
            '}\n'
        )

        assert schema.enum("Status").values == ["OPEN", "CLOSED"]
        ticket = schema.model("Ticket")
        assert ticket.field("status").kind == FieldKind.ENUM
        assert ticket.field("body").attributes == ["@db.Text"]
        assert ticket.attributes == ["@@index([status])"]
        assert schema.model_names == ["Ticket"]

    def test_named_relation_arguments(self):
        schema = parse_schema(
            "model Post {\n"
            "  id       String @id\n"
            "  authorId String\n"
            '  author   User   @relation("Authored", fields: [authorId], references: [id], onDelete: Cascade)\n'
            "}\n"
            "model User {\n"
            "  id    String @id\n"
            '  posts Post[] @relation("Authored")\n'
            "}\n"
        )

        relation = schema.model("Post").field("author").relationship
        assert relation.name == "Authored"
        assert relation.on_delete == "Cascade"
        assert not schema.model("User").field("posts").relationship.has_binding

    def test_unterminated_block(self):
        with pytest.raises(SchemaError) as exc_info:
            parse_schema("model Broken {\n  id String @id\n")
        assert exc_info.value.line_no == 1

    def test_malformed_field_reports_line(self):
        with pytest.raises(SchemaError) as exc_info:
            parse_schema("model Broken {\n  id String @id\n  ???\n}\n")
        assert exc_info.value.line_no == 3


class TestSplitting:

    def test_comment_marker_inside_string_is_kept(self):
        code, comment = split_comment('url String @default("http://example.com") // homepage')
        assert code == 'url String @default("http://example.com")'
        assert comment == "// homepage"

    def test_attributes_split_at_top_level_only(self):
        assert split_attributes('@id @default(dbgenerated("gen_random_uuid()")) @db.Uuid') == [
            "@id",
            '@default(dbgenerated("gen_random_uuid()"))',
            "@db.Uuid",
        ]


class TestRender:

    def test_render_field(self, business_schema):
        task = parse_schema(business_schema).model("Task")

        assert render_field(task.field("id")) == "id String @id @default(cuid())"
        assert render_field(task.field("done")) == "done Boolean @default(false)"
        assert render_field(task.field("project")) == "project Project @relation(fields: [projectId], references: [id])"

    def test_render_field_keeps_trailing_comment(self):
        f = parse_schema("model A {\n  id String @id // primary\n}\n").model("A").field("id")
        assert render_field(f) == "id String @id // primary"

    def test_render_enum_with_description(self):
        schema = parse_schema("/// Colours\nenum Colour {\n  RED\n  BLUE\n}\n")
        assert render_enum(schema.enum("Colour")) == "/// Colours\nenum Colour {\n  RED\n  BLUE\n}"

    def test_rendered_schema_parses_to_the_same_shape(self, business_schema):
        schema = parse_schema(business_schema)
        reparsed = parse_schema(render_schema(schema))

        assert reparsed.model_names == schema.model_names
        for model in schema.models:
            assert [render_field(f) for f in reparsed.model(model.name).fields] == [render_field(f) for f in model.fields]


class TestValidate:

    def test_business_schema_is_valid(self, business_schema):
        assert validate_schema(parse_schema(business_schema)) == []

    def test_identity_problems(self):
        schema = parse_schema(
            "model NoId {\n  name String\n}\n"
            "model TwoIds {\n  a String @id\n  b String @id\n}\n"
            "model Both {\n  a String @id\n  b String\n  @@id([a, b])\n}\n"
            "model Loose {\n  id String? @id\n}\n"
        )

        issues = validate_schema(schema)

        assert "Model 'NoId' has no @id field" in issues
        assert "Model 'TwoIds' has 2 @id fields" in issues
        assert "Model 'Both' declares both @id and @@id" in issues
        assert "Identity field 'Loose.id' must not be optional" in issues

    def test_compound_id_alone_is_fine(self):
        schema = parse_schema("model Pair {\n  a String\n  b String\n  @@id([a, b])\n}\n")
        assert validate_schema(schema) == []

    def test_unknown_types_and_duplicates(self):
        schema = parse_schema(
            "model A {\n  id String @id\n  b Widget\n}\n"
            "model A {\n  id String @id\n}\n"
        )

        issues = validate_schema(schema)

        assert "Field 'A.b' references unknown type 'Widget'" in issues
        assert "Duplicate definition of 'A' (2 times)" in issues

    def test_relation_binding_must_exist(self):
        schema = parse_schema(
            "model Owner {\n  id String @id\n  pets Pet[]\n}\n"
            "model Pet {\n"
            "  id    String @id\n"
            "  owner Owner  @relation(fields: [ownerId], references: [uuid])\n"
            "}\n"
        )

        issues = validate_schema(schema)

        assert "Relation 'Pet.owner' binds missing field 'ownerId'" in issues
        assert "Relation 'Pet.owner' references missing field 'Owner.uuid'" in issues

    def test_relation_without_opposite_field(self):
        schema = parse_schema(
            "model User {\n  id String @id\n}\n"
            "model Log {\n"
            "  id     String  @id\n"
            "  userId String?\n"
            "  user   User?   @relation(fields: [userId], references: [id])\n"
            "}\n"
        )

        assert validate_schema(schema) == ["Relation 'Log.user' has no opposite field on 'User'"]

    def test_named_relations_pair_by_name(self):
        schema = parse_schema(
            "model User {\n"
            "  id       String @id\n"
            '  authored Post[] @relation("Authored")\n'
            "}\n"
            "model Post {\n"
            "  id       String @id\n"
            "  authorId String\n"
            '  author   User   @relation("Authored", fields: [authorId], references: [id])\n'
            "  editorId String\n"
            '  editor   User   @relation("Edited", fields: [editorId], references: [id])\n'
            "}\n"
        )

        assert validate_schema(schema) == ["Relation 'Post.editor' has no opposite field on 'User'"]

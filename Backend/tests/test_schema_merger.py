# tests/test_schema_merger.py
"""
System catalog merge.
"""
from appforge.schema import default_catalog, merge_catalog, parse_schema, sanitize, validate_schema
from appforge.schema.merger import SYSTEM_BLOCK_END, SYSTEM_BLOCK_START, strip_system_block


SYSTEM_MODELS = ["User", "ExecutionLog", "AuditLog", "ChatConversation", "ChatMessage"]


def test_three_business_models_plus_catalog(business_schema):
    merged = merge_catalog(business_schema)

    assert merged.model_names == ["Project", "Task", "Tag"] + SYSTEM_MODELS
    assert [e.name for e in merged.enums] == ["UserRole"]
    assert merged.collisions == []
    assert merged.catalog_version == default_catalog().version


def test_business_text_is_kept_verbatim(business_schema):
    merged = merge_catalog(business_schema)

    assert merged.text.startswith(business_schema.rstrip() + "\n\n")
    assert SYSTEM_BLOCK_START.format(version=merged.catalog_version) in merged.text
    assert merged.text.rstrip().endswith(SYSTEM_BLOCK_END)


def test_merged_text_parses_and_validates(business_schema):
    schema = parse_schema(merge_catalog(business_schema).text)

    assert len(schema.models) == 8
    assert schema.enum("UserRole").values == ["ADMIN", "MEMBER", "VIEWER"]
    assert validate_schema(schema) == []


def test_remerging_does_not_duplicate_the_system_block(business_schema):
    once = merge_catalog(business_schema)
    twice = merge_catalog(once.text)

    assert twice.text == once.text
    assert twice.model_names == once.model_names


def test_strip_system_block(business_schema):
    merged = merge_catalog(business_schema)

    assert strip_system_block(merged.text) == business_schema.rstrip() + "\n"
    assert strip_system_block(business_schema) == business_schema


def test_business_model_wins_a_name_collision(business_schema):
    text = business_schema + "\nmodel User {\n  id    String @id @default(cuid())\n  email String @unique\n}\n"

    merged = merge_catalog(text)

    assert merged.collisions == ["User"]
    assert "User" not in [m.name for m in merged.system_models]
    assert merged.text.count("model User {") == 1
    assert merged.model_names.count("User") == 1


def test_enum_collision_is_reported_first():
    text = "enum UserRole {\n  OWNER\n}\n\nmodel User {\n  id String @id\n}\n"

    merged = merge_catalog(text)

    assert merged.collisions == ["UserRole", "User"]
    assert merged.system_enums == []
    assert parse_schema(merged.text).enum("UserRole").values == ["OWNER"]


BUSINESS_USER = """model User {
  id    String @id @default(cuid())
  email String @unique
  tasks Task[]
}

model Task {
  id      String  @id @default(cuid())
  title   String
  ownerId String?
  owner   User?   @relation(fields: [ownerId], references: [id])
}
"""


def test_catalog_relations_to_a_business_user_are_dropped():
    merged = merge_catalog(BUSINESS_USER)

    assert merged.collisions == ["User"]
    schema = parse_schema(merged.text)
    for name in ["ExecutionLog", "AuditLog", "ChatConversation"]:
        model = schema.model(name)
        assert model.field("user") is None
        assert model.field("userId") is None
    assert schema.model("ChatMessage").field("conversation").relationship.fields == ["conversationId"]
    assert validate_schema(schema) == []


def test_merged_business_user_survives_sanitizing():
    result = sanitize(merge_catalog(BUSINESS_USER).text)

    assert validate_schema(parse_schema(result.text)) == []
    assert "model User {\n  id    String @id @default(cuid())" in result.text


def test_business_role_enum_drops_an_unknown_catalog_default():
    merged = merge_catalog("enum UserRole {\n  OWNER\n  GUEST\n}\n")

    user = parse_schema(merged.text).model("User")
    assert user.field("role").type == "UserRole"
    assert user.field("role").default_value is None
    assert user.field("executionLogs").is_list


def test_catalog_itself_is_not_modified_by_a_collision():
    catalog = default_catalog()

    merge_catalog(BUSINESS_USER, catalog)

    assert catalog.models[1].field("user") is not None


def test_empty_business_schema_gets_catalog_only():
    merged = merge_catalog("")

    assert merged.business_models == []
    assert merged.text.startswith(SYSTEM_BLOCK_START.format(version=merged.catalog_version))
    assert [m.name for m in merged.models] == SYSTEM_MODELS


def test_catalog_is_rebuilt_for_every_call():
    first = default_catalog()
    first.models.pop()

    assert len(default_catalog().models) == len(SYSTEM_MODELS)

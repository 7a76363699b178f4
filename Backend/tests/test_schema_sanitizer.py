# tests/test_schema_sanitizer.py
"""
Structural schema repair: one-to-one bindings, optional foreign keys and
required identities.
"""
from appforge.schema import merge_catalog, parse_schema, sanitize, validate_schema
from appforge.schema.sanitizer import DropBrokenOneToOne


ONE_TO_ONE = """model User {
  id      String   @id @default(cuid())
  profile Profile?
}

model Profile {
  id     String @id @default(cuid())
  userId String
  user   User   @relation(fields: [userId], references: [id])
}
"""


def changed_lines(before: str, after: str):
    return [
        (old, new)
        for old, new in zip(before.splitlines(), after.splitlines())
        if old != new
    ]


def test_foreign_keys_and_their_relations_become_optional(business_schema):
    result = sanitize(business_schema)

    assert [(a.rule, a.model, a.field) for a in result.actions] == [
        ("optional-foreign-key", "Task", "projectId"),
        ("optional-foreign-key", "Task", "project"),
    ]
    assert changed_lines(business_schema, result.text) == [
        ("  projectId String", "  projectId String?"),
        (
            "  project   Project  @relation(fields: [projectId], references: [id])",
            "  project Project? @relation(fields: [projectId], references: [id])",
        ),
    ]


def test_sanitize_is_idempotent(business_schema):
    once = sanitize(business_schema)
    twice = sanitize(once.text)

    assert twice.text == once.text
    assert not twice.changed


def test_clean_schema_is_returned_untouched():
    text = "model Note {\n  id   String @id\n  body String\n}\n"

    result = sanitize(text)

    assert result.text is text
    assert result.actions == []


def test_optional_identity_is_made_required():
    text = "model Note {\n  id   String? @id @default(cuid())\n  body String\n}\n"

    result = sanitize(text)

    assert result.text == "model Note {\n  id String @id @default(cuid())\n  body String\n}\n"
    assert [a.rule for a in result.actions] == ["required-identity"]
    assert validate_schema(parse_schema(result.text)) == []


def test_broken_one_to_one_changes_a_single_line():
    result = sanitize(ONE_TO_ONE, rules=[DropBrokenOneToOne()])

    assert changed_lines(ONE_TO_ONE, result.text) == [
        ("  user   User   @relation(fields: [userId], references: [id])", "  user User?"),
    ]
    assert result.actions[0].line_no == 9


def test_broken_one_to_one_with_all_rules():
    result = sanitize(ONE_TO_ONE)

    rules = {(a.rule, a.field) for a in result.actions}
    assert rules == {("broken-one-to-one", "user"), ("optional-foreign-key", "userId")}
    profile = parse_schema(result.text).model("Profile")
    assert profile.field("user").relationship is None
    assert profile.field("userId").is_optional


def test_unique_foreign_key_keeps_a_true_one_to_one():
    text = ONE_TO_ONE.replace("userId String\n", "userId String @unique\n")

    result = sanitize(text)

    profile = parse_schema(result.text).model("Profile")
    assert profile.field("user").relationship.fields == ["userId"]
    assert profile.field("user").is_optional
    assert profile.field("userId").is_unique
    assert "broken-one-to-one" not in [a.rule for a in result.actions]


def test_int_foreign_key_and_comment_are_preserved():
    text = (
        "model Team {\n  id Int @id\n  members Member[]\n}\n"
        "model Member {\n"
        "  id     Int  @id\n"
        "  teamId Int  // owning team\n"
        "  team   Team @relation(fields: [teamId], references: [id])\n"
        "}\n"
    )

    result = sanitize(text)

    assert "  teamId Int? // owning team\n" in result.text
    assert "  team Team? @relation(fields: [teamId], references: [id])\n" in result.text


def test_non_key_columns_are_left_alone():
    text = "model Grid {\n  id     String @id\n  gridId String @unique\n  valid  Boolean\n}\n"

    result = sanitize(text)

    assert "gridId String? @unique" in result.text
    assert "  valid  Boolean\n" in result.text


def test_merged_schema_sanitizes_cleanly(business_schema):
    merged = merge_catalog(business_schema)

    result = sanitize(merged.text)

    assert {a.model for a in result.actions} == {"Task"}
    assert validate_schema(parse_schema(result.text)) == []

# appforge/schema/catalog.py
"""
System catalog - the models every generated application carries.

User/role tables back the generated app's auth, ExecutionLog records action
runs, AuditLog records data changes and the chat tables hold assistant
conversations. Back-relations are wired by model name.
"""
from dataclasses import dataclass, field
from typing import List

from appforge.schema.ir import EnumDef, Field, FieldKind, Model, Relation


CATALOG_VERSION = "1"


def _id() -> Field:
    return Field(name="id", type="String", is_id=True, default_value="cuid()")


def _created_at() -> Field:
    return Field(name="createdAt", type="DateTime", default_value="now()")


def _updated_at() -> Field:
    return Field(name="updatedAt", type="DateTime", attributes=["@updatedAt"])


def _owner(target: str, fk: str, name: str, on_delete: str = "SetNull") -> List[Field]:
    """Optional many-to-one reference plus its foreign key."""
    return [
        Field(name=fk, type="String", is_required=False),
        Field(
            name=name,
            type=target,
            kind=FieldKind.OBJECT,
            is_required=False,
            relationship=Relation(fields=[fk], references=["id"], on_delete=on_delete),
        ),
    ]


def _many(name: str, target: str) -> Field:
    return Field(name=name, type=target, kind=FieldKind.OBJECT, is_list=True)


@dataclass
class SystemCatalog:
    version: str
    models: List[Model] = field(default_factory=list)
    enums: List[EnumDef] = field(default_factory=list)

    @property
    def model_names(self) -> List[str]:
        return [m.name for m in self.models]


def default_catalog() -> SystemCatalog:
    """Build a fresh catalog; callers may mutate the returned IR."""
    user_role = EnumDef(
        name="UserRole",
        values=["ADMIN", "MEMBER", "VIEWER"],
        description="Access level of an application user",
    )

    user = Model(
        name="User",
        description="Application user",
        fields=[
            _id(),
            Field(name="email", type="String", is_unique=True),
            Field(name="name", type="String", is_required=False),
            Field(name="role", type="UserRole", kind=FieldKind.ENUM, default_value="MEMBER"),
            _many("executionLogs", "ExecutionLog"),
            _many("auditLogs", "AuditLog"),
            _many("conversations", "ChatConversation"),
            _created_at(),
            _updated_at(),
        ],
    )

    execution_log = Model(
        name="ExecutionLog",
        description="One run of an action or scheduled job",
        fields=[
            _id(),
            Field(name="actionName", type="String"),
            Field(name="status", type="String"),
            Field(name="input", type="Json", is_required=False),
            Field(name="output", type="Json", is_required=False),
            Field(name="error", type="String", is_required=False),
            Field(name="durationMs", type="Int", is_required=False),
            *_owner("User", "userId", "user"),
            _created_at(),
        ],
        attributes=["@@index([actionName, createdAt])"],
    )

    audit_log = Model(
        name="AuditLog",
        description="Record of a change made to application data",
        fields=[
            _id(),
            Field(name="action", type="String"),
            Field(name="entityType", type="String"),
            Field(name="entityRef", type="String", is_required=False),
            Field(name="changes", type="Json", is_required=False),
            *_owner("User", "userId", "user"),
            _created_at(),
        ],
    )

    conversation = Model(
        name="ChatConversation",
        description="Assistant chat thread",
        fields=[
            _id(),
            Field(name="title", type="String", is_required=False),
            *_owner("User", "userId", "user"),
            _many("messages", "ChatMessage"),
            _created_at(),
            _updated_at(),
        ],
    )

    message = Model(
        name="ChatMessage",
        description="Single message inside a chat thread",
        fields=[
            _id(),
            Field(name="role", type="String"),
            Field(name="content", type="String"),
            *_owner("ChatConversation", "conversationId", "conversation", on_delete="Cascade"),
            _created_at(),
        ],
    )

    return SystemCatalog(
        version=CATALOG_VERSION,
        models=[user, execution_log, audit_log, conversation, message],
        enums=[user_role],
    )

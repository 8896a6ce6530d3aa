from .models import (
    Column,
    ColumnTest,
    Document,
    DocumentKind,
    ForeignKeyReference,
    PrimaryKey,
    Relationship,
    RelationshipTest,
    RuleRelationship,
    RuleSet,
    Schema,
    SuggestedJoin,
    Table,
    TableRule,
    empty_document,
    rules_summary,
)
from .session import DocumentSession, DocumentState, coerce_document

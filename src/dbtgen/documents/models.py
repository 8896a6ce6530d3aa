"""
Document models for the two generated artifacts: the relational Schema and
the DBT RuleSet.

Field aliases follow the camelCase keys of the generation contract, so a
model validates straight from the LLM's JSON. Every list-valued field
defaults to an empty list and coerces an explicit ``null`` to ``[]``, which
keeps partially streamed documents safe to iterate.

Documents are frozen snapshots: updates always produce a new instance.
"""
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

T = TypeVar("T")


def _none_as_empty(value: Any) -> Any:
    return [] if value is None else value


def _none_as_false(value: Any) -> Any:
    return False if value is None else value


ItemList = Annotated[List[T], BeforeValidator(_none_as_empty)]
Flag = Annotated[bool, BeforeValidator(_none_as_false)]


class DocumentModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        extra="ignore",
        protected_namespaces=(),
    )

    def to_json_dict(self) -> Dict[str, Any]:
        """Dumps the document in the camelCase wire shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- Schema ---

class DisplayFlag(DocumentModel):
    label: Optional[str] = None
    css_class: Optional[str] = Field(default=None, alias="class")


class ForeignKeyReference(DocumentModel):
    referenced_table: Optional[str] = Field(default=None, alias="referencedTable")
    referenced_column: Optional[str] = Field(default=None, alias="referencedColumn")
    confidence: Optional[str] = None


class PrimaryKey(DocumentModel):
    columns: ItemList[str] = Field(default_factory=list)
    kind: Optional[str] = Field(default=None, alias="type")
    confidence: Optional[str] = None


class Column(DocumentModel):
    name: Optional[str] = None
    data_type: Optional[str] = Field(default=None, alias="dataType")
    description: Optional[str] = None
    is_pii: Flag = Field(default=False, alias="isPII")
    is_primary_key: Flag = Field(default=False, alias="isPrimaryKey")
    is_foreign_key: Flag = Field(default=False, alias="isForeignKey")
    foreign_key_reference: Optional[ForeignKeyReference] = Field(default=None, alias="foreignKeyReference")
    quality_observations: ItemList[str] = Field(default_factory=list, alias="qualityObservations")
    constraints: ItemList[str] = Field(default_factory=list)
    flags: ItemList[DisplayFlag] = Field(default_factory=list)


class Table(DocumentModel):
    table_name: Optional[str] = Field(default=None, alias="tableName")
    sheet_name: Optional[str] = Field(default=None, alias="sheetName")
    description: Optional[str] = None
    table_type: Optional[str] = Field(default=None, alias="tableType")
    primary_key: Optional[PrimaryKey] = Field(default=None, alias="primaryKey")
    columns: ItemList[Column] = Field(default_factory=list)


class Relationship(DocumentModel):
    """A reference between two tables by name; it does not own either table."""
    from_table: Optional[str] = Field(default=None, alias="fromTable")
    from_column: Optional[str] = Field(default=None, alias="fromColumn")
    to_table: Optional[str] = Field(default=None, alias="toTable")
    to_column: Optional[str] = Field(default=None, alias="toColumn")
    relationship_type: Optional[str] = Field(default=None, alias="relationshipType")
    join_type: Optional[str] = Field(default=None, alias="joinType")
    confidence: Optional[str] = None
    description: Optional[str] = None


class SuggestedJoin(DocumentModel):
    description: Optional[str] = None
    sql_pattern: Optional[str] = Field(default=None, alias="sqlPattern")
    tables: ItemList[str] = Field(default_factory=list)
    use_case: Optional[str] = Field(default=None, alias="useCase")


class Schema(DocumentModel):
    file_name: Optional[str] = Field(default=None, alias="fileName")
    tables: ItemList[Table] = Field(default_factory=list, alias="schemas")
    relationships: ItemList[Relationship] = Field(default_factory=list)
    suggested_joins: ItemList[SuggestedJoin] = Field(default_factory=list, alias="suggestedJoins")
    modeling_recommendations: ItemList[str] = Field(default_factory=list, alias="modelingRecommendations")


# --- RuleSet ---

# A column test is either a bare name ("not_null") or a single-key mapping
# of name to arguments ({"accepted_values": {"values": ["a", "b"]}}).
TestSpec = Union[str, Dict[str, Any]]


class RelationshipTest(DocumentModel):
    test: Optional[str] = None
    to: Optional[str] = None
    field: Optional[str] = None


class ColumnTest(DocumentModel):
    column: Optional[str] = None
    tests: ItemList[TestSpec] = Field(default_factory=list)
    relationships: ItemList[RelationshipTest] = Field(default_factory=list)


class RuleRelationship(DocumentModel):
    description: Optional[str] = None
    join_logic: Optional[str] = Field(default=None, alias="joinLogic")


class TableRule(DocumentModel):
    """Generated DBT artifacts for one table. ``table_name`` is the merge key."""
    table_name: Optional[str] = Field(default=None, alias="tableName")
    model_sql: Optional[str] = Field(default=None, alias="modelSql")
    yaml_config: Optional[str] = Field(default=None, alias="yamlConfig")
    tests: ItemList[ColumnTest] = Field(default_factory=list)
    recommendations: ItemList[str] = Field(default_factory=list)
    materialization: Optional[str] = None
    relationships: ItemList[RuleRelationship] = Field(default_factory=list)


class RuleSet(DocumentModel):
    rules: ItemList[TableRule] = Field(default_factory=list, alias="dbtRules")
    global_recommendations: ItemList[str] = Field(default_factory=list, alias="globalRecommendations")
    summary: Optional[str] = None

    def find_rule(self, table_name: str) -> Optional[TableRule]:
        for rule in self.rules:
            if rule.table_name == table_name:
                return rule
        return None


# --- Kinds ---

class DocumentKind(str, Enum):
    SCHEMA = "schema"
    RULE_SET = "rule_set"

    @property
    def label(self) -> str:
        """Name shown to users in status messages."""
        return "Schema" if self is DocumentKind.SCHEMA else "DBT rules"


Document = Union[Schema, RuleSet]

DOCUMENT_MODELS: Dict[DocumentKind, Type[DocumentModel]] = {
    DocumentKind.SCHEMA: Schema,
    DocumentKind.RULE_SET: RuleSet,
}


def empty_document(kind: DocumentKind) -> Document:
    """Returns a well-formed document of ``kind`` with every list empty."""
    return DOCUMENT_MODELS[kind]()


def rules_summary(rule_set: Optional[RuleSet]) -> str:
    """Human-readable summary built from the global recommendations."""
    if rule_set is None or not rule_set.global_recommendations:
        return "No DBT rules summary available."
    return "\n\n".join(rule_set.global_recommendations)

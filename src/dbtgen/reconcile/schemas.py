from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from dbtgen.documents.models import ItemList, RuleSet, TableRule


class PatchTableRule(TableRule):
    """A rule edit from chat. Only the fields it carries are applied.

    ``is_new_rule`` is request metadata and is never stored on the rule set.
    """
    table_name: str = Field(alias="tableName")
    is_new_rule: bool = Field(default=False, alias="isNewRule")


class PatchRuleSet(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    rules: ItemList[PatchTableRule] = Field(default_factory=list, alias="dbtRules")
    global_recommendations: Optional[List[str]] = Field(default=None, alias="globalRecommendations")
    summary: Optional[str] = None


class ChangeKind(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    ERROR = "error"


class ChangeLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ChangeKind
    message: str
    table_name: Optional[str] = None


class ReconcileResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    updated: RuleSet
    log: List[ChangeLogEntry] = Field(default_factory=list)
    last_modified_table: Optional[str] = None

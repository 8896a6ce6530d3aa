from __future__ import annotations

from typing import List, Optional

from dbtgen.common.errors import RulesNotGeneratedError
from dbtgen.common.logger import get_logger
from dbtgen.documents.models import RuleSet, TableRule
from .schemas import ChangeKind, ChangeLogEntry, PatchRuleSet, PatchTableRule, ReconcileResult

logger = get_logger("reconciler")

ADDITIONAL_SUFFIX = "_additional"
DISAMBIGUATING_MARKERS = ("_new", ADDITIONAL_SUFFIX)


def _find_index(rules: List[TableRule], table_name: str) -> Optional[int]:
    for index, rule in enumerate(rules):
        if rule.table_name == table_name:
            return index
    return None


def _unique_name(rules: List[TableRule], table_name: str) -> str:
    candidate = table_name
    if not any(marker in table_name for marker in DISAMBIGUATING_MARKERS):
        candidate = f"{table_name}{ADDITIONAL_SUFFIX}"
    unique = candidate
    counter = 2
    while _find_index(rules, unique) is not None:
        unique = f"{candidate}_{counter}"
        counter += 1
    return unique


def _merge(existing: TableRule, patch_rule: PatchTableRule) -> TableRule:
    """Shallow-overwrites the fields carried by the patch onto a copy of ``existing``."""
    update = {
        name: getattr(patch_rule, name)
        for name in patch_rule.model_fields_set
        if name in TableRule.model_fields
    }
    return existing.model_copy(update=update)


def _as_rule(patch_rule: PatchTableRule, table_name: str) -> TableRule:
    fields = {name: getattr(patch_rule, name) for name in TableRule.model_fields}
    fields["table_name"] = table_name
    return TableRule(**fields)


def reconcile(current: Optional[RuleSet], patch: PatchRuleSet) -> ReconcileResult:
    """
    Applies a chat patch to a finalized rule set.

    Rules are matched on ``table_name``. A match that is not flagged as new
    is merged field by field; anything else is appended, renamed with a
    disambiguating suffix when it collides with an existing table name.
    Global recommendations and summary are replaced wholesale when present.

    ``current`` is never modified; the result carries a new rule set, the
    ordered change log and the last table touched.

    Raises:
        RulesNotGeneratedError: If there is no rule set to patch.
    """
    if current is None:
        raise RulesNotGeneratedError(
            "No existing DBT rules found. Please generate DBT rules first."
        )

    rules = list(current.rules)
    log: List[ChangeLogEntry] = []
    last_modified_table: Optional[str] = None

    for patch_rule in patch.rules:
        table_name = patch_rule.table_name
        if not table_name:
            log.append(ChangeLogEntry(
                kind=ChangeKind.ERROR,
                message="Skipped a rule change without a table name",
            ))
            continue

        index = _find_index(rules, table_name)
        if index is not None and not patch_rule.is_new_rule:
            rules[index] = _merge(rules[index], patch_rule)
            log.append(ChangeLogEntry(
                kind=ChangeKind.MODIFIED,
                message=f"Modified rule for table '{table_name}'",
                table_name=table_name,
            ))
        else:
            if index is not None:
                table_name = _unique_name(rules, table_name)
            rules.append(_as_rule(patch_rule, table_name))
            log.append(ChangeLogEntry(
                kind=ChangeKind.ADDED,
                message=f"Added new rule for table '{table_name}'",
                table_name=table_name,
            ))
        last_modified_table = table_name

    update = {"rules": rules}
    if patch.global_recommendations is not None:
        update["global_recommendations"] = list(patch.global_recommendations)
        log.append(ChangeLogEntry(kind=ChangeKind.MODIFIED, message="Updated global recommendations"))
    if patch.summary is not None:
        update["summary"] = patch.summary
        log.append(ChangeLogEntry(kind=ChangeKind.MODIFIED, message="Updated summary"))

    updated = current.model_copy(update=update)
    logger.info(
        f"Reconciled patch: {len(log)} changes, last modified table: {last_modified_table}"
    )
    return ReconcileResult(updated=updated, log=log, last_modified_table=last_modified_table)


def format_change_log(result: ReconcileResult) -> str:
    """Renders the change log as the markdown message shown in chat."""
    sections = [
        (ChangeKind.ADDED, "**Added:**"),
        (ChangeKind.MODIFIED, "**Modified:**"),
        (ChangeKind.ERROR, "**Errors:**"),
    ]
    response = "### DBT Rules Updated\n\n"
    for kind, heading in sections:
        entries = [entry.message for entry in result.log if entry.kind == kind]
        if entries:
            response += heading + "\n"
            response += "\n".join(f"- {message}" for message in entries)
            response += "\n\n"
    return response.rstrip() + "\n"

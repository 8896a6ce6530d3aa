from .schemas import ChangeKind, ChangeLogEntry, PatchRuleSet, PatchTableRule, ReconcileResult
from .reconciler import ADDITIONAL_SUFFIX, format_change_log, reconcile

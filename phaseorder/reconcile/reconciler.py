"""
reconcile/reconciler.py - Phase order reconciliation

Merges stored phases with the canonical template into one gap-free
sequence. Reconciliation never raises: every problem it finds becomes an
Anomaly and the best available order is still returned.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple
import logging

from phaseorder.core.enums import EditMode, RuleKind, RULE_KIND_RANK
from phaseorder.core.records import PhaseRecord, TemplateEntry, name_key
from phaseorder.core.rules import PositionRule, resolve, fallback_key
from phaseorder.errors.aggregator import AnomalyAggregator, AnomalyReport
from phaseorder.errors.exceptions import PositionResolutionError
from phaseorder.errors.taxonomy import Anomaly, ErrorCode, ErrorSeverity, create_anomaly
from phaseorder.reconcile.validator import check_positions

logger = logging.getLogger("reconcile.reconciler")

SortKey = Tuple[int, int, int, int, int]


@dataclass
class ReconcileResult:
    """
    Ordered phases plus the anomalies found producing them.

    Unpacks as ``ordered, anomalies = reconcile(...)``.
    """
    phases: List[PhaseRecord] = field(default_factory=list)
    anomalies: List[Anomaly] = field(default_factory=list)

    def __iter__(self) -> Iterator[Any]:
        yield self.phases
        yield self.anomalies

    @property
    def ordered_ids(self) -> List[str]:
        return [p.id for p in self.phases]

    @property
    def is_clean(self) -> bool:
        return not self.anomalies

    def get(self, phase_id: str) -> Optional[PhaseRecord]:
        for phase in self.phases:
            if phase.id == phase_id:
                return phase
        return None

    def has(self, code: ErrorCode) -> bool:
        return any(a.code == code for a in self.anomalies)

    def report(self) -> AnomalyReport:
        aggregator = AnomalyAggregator()
        aggregator.add_all(self.anomalies)
        return aggregator.generate_report()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phases": [p.to_dict() for p in self.phases],
            "anomalies": [a.to_dict() for a in self.anomalies],
        }


def reconcile(
    phases: Iterable[PhaseRecord],
    template: Optional[Sequence[TemplateEntry]] = None,
    mode: EditMode = EditMode.PROJECT_EDIT,
) -> ReconcileResult:
    """
    Turn an unordered, possibly corrupt phase collection into a valid order.

    Args:
        phases: Phases in their incoming order
        template: Canonical standard phase rules; ignored in template edit
        mode: Edit mode

    Returns:
        ReconcileResult with copies of the phases carrying resolved_index
    """
    aggregator = AnomalyAggregator()

    unique = _deduplicate(phases, aggregator)
    working = _apply_template(unique, template, mode, aggregator)
    total = len(working)

    aggregator.add_all(check_positions(working, mode))

    keyed: List[Tuple[SortKey, PhaseRecord]] = []
    for incoming_index, phase in enumerate(working):
        keyed.append((_sort_key(phase, incoming_index, total, aggregator), phase))

    keyed.sort(key=lambda item: item[0])

    ordered: List[PhaseRecord] = []
    for position, (_, phase) in enumerate(keyed, start=1):
        if phase.position_rule is None:
            provisional = PositionRule.nth(position)
            aggregator.add(create_anomaly(
                ErrorCode.MISSING_RULE,
                f"Phase '{phase.name}' has no position rule; assigned {provisional.label()}",
                phase=phase,
                expected=provisional,
            ))
            phase = phase.with_rule(provisional)
        ordered.append(phase.with_index(position))

    result = ReconcileResult(phases=ordered, anomalies=aggregator.issues)

    if result.anomalies:
        logger.warning(
            f"Reconciled {total} phase(s) with {len(result.anomalies)} anomaly(ies): "
            + ", ".join(sorted({a.code.name for a in result.anomalies}))
        )
    else:
        logger.debug(f"Reconciled {total} phase(s) cleanly")

    return result


# ==================== Steps ====================

def _deduplicate(phases: Iterable[PhaseRecord], aggregator: AnomalyAggregator) -> List[PhaseRecord]:
    """Keep the first occurrence of each identity."""
    seen: Set[Tuple[str, Optional[str]]] = set()
    unique: List[PhaseRecord] = []

    for phase in phases:
        if phase.identity in seen:
            aggregator.add(create_anomaly(
                ErrorCode.DUPLICATE_ID,
                f"Duplicate phase '{phase.name}' ({phase.id}) dropped",
                phase=phase,
            ))
            continue
        seen.add(phase.identity)
        unique.append(phase)

    return unique


def _apply_template(
    phases: List[PhaseRecord],
    template: Optional[Sequence[TemplateEntry]],
    mode: EditMode,
    aggregator: AnomalyAggregator,
) -> List[PhaseRecord]:
    """Overwrite standard phase rules with the canonical template rules."""
    if template is None or mode == EditMode.TEMPLATE_EDIT:
        return list(phases)

    canonical: Dict[str, PositionRule] = {}
    for entry in template:
        canonical.setdefault(name_key(entry.name), entry.position_rule)

    result: List[PhaseRecord] = []
    for phase in phases:
        if not phase.is_template_owned:
            result.append(phase)
            continue

        rule = canonical.get(phase.name_key)
        if rule is None:
            aggregator.add(create_anomaly(
                ErrorCode.UNKNOWN_TEMPLATE_PHASE,
                f"Standard phase '{phase.name}' is not in the template; keeping its stored rule",
                phase=phase,
                actual=phase.position_rule,
                severity=ErrorSeverity.INFO,
            ))
        elif rule != phase.position_rule:
            aggregator.add(create_anomaly(
                ErrorCode.STALE_POSITION,
                f"Standard phase '{phase.name}' had {_label(phase.position_rule)}; "
                f"template says {rule.label()}",
                phase=phase,
                actual=phase.position_rule,
                expected=rule,
            ))
            phase = phase.with_rule(rule)
        result.append(phase)

    return result


def _sort_key(
    phase: PhaseRecord,
    incoming_index: int,
    total: int,
    aggregator: AnomalyAggregator,
) -> SortKey:
    """
    (raw_key, kind_rank, requested_value, standard_rank, incoming_index)
    """
    standard_rank = 0 if phase.is_template_owned else 1
    rule = phase.position_rule

    if rule is None:
        # Placed by incoming order; the MISSING_RULE anomaly is added once sorted
        return incoming_index + 1, RULE_KIND_RANK[RuleKind.NTH], 0, standard_rank, incoming_index

    try:
        raw = resolve(rule, total)
        requested = raw if rule.kind == RuleKind.NTH else 0
    except PositionResolutionError as e:
        aggregator.add(create_anomaly(
            e.code,
            f"Phase '{phase.name}': {e.message}",
            phase=phase,
            actual=rule,
            expected=f"1..{total}",
        ))
        raw, requested = fallback_key(rule, total, incoming_index + 1)

    return raw, rule.rank, requested, standard_rank, incoming_index


def _label(rule: Optional[PositionRule]) -> str:
    return rule.label() if rule is not None else "no rule"

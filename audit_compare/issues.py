"""
Analysis Result Models v1.0.0
=============================
Data classes for the audit payload produced by the external analysis
service, and the unified issue list the annotation overlay consumes.

The service answers in two phases: a fast audit (scores, fact, strategy
and compliance issues) and a slower prompt optimisation that is merged
into the same result later. Both arrive as camelCase JSON; snake_case
keys are accepted too.
"""

import re
from dataclasses import dataclass, field, replace
from typing import List, Dict, Optional, Any, Iterable

from config_logging import get_logger, ValidationError

logger = get_logger('audit_compare.issues')

SOURCES = ('output', 'reasoning')
FACT_TYPES = ('Fabrication', 'Contradiction', 'Omission', 'Reasoning Error', 'Other')
COMPLIANCE_TYPES = ('Ad Law Violation', 'Risk', 'Ethical Concern', 'Strategy Violation')
SEVERITIES = ('High', 'Medium', 'Low')

CATEGORY_FACT = 'Fact'
CATEGORY_STRATEGY = 'Strategy'
CATEGORY_COMPLIANCE = 'Compliance'

REQUIRED_AUDIT_FIELDS = (
    ('hasHallucination', 'has_hallucination'),
    ('score', 'score'),
    ('summary', 'summary'),
    ('strategyReport', 'strategy_report'),
    ('rootCause', 'root_cause'),
    ('issues', 'issues'),
)

_FENCE_OPEN = re.compile(r'^```(markdown|text)?')
_FENCE_CLOSE = re.compile(r'```$')


def _get(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key among camelCase/snake_case spellings."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _text(data: Dict[str, Any], *keys: str) -> str:
    value = _get(data, *keys, default="")
    return value if isinstance(value, str) else str(value)


def _score(data: Dict[str, Any], *keys: str) -> int:
    """Read an integer score and clamp it to 0-100."""
    value = _get(data, *keys, default=0)
    try:
        score = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Score must be an integer, got {value!r}", field=keys[0])
    return max(0, min(100, score))


def _source(data: Dict[str, Any]) -> str:
    return _text(data, 'source') or 'output'


def _records(data: Dict[str, Any], *keys: str) -> List[Dict[str, Any]]:
    """Read a list of issue dicts."""
    value = _get(data, *keys, default=[])
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise ValidationError(f"'{keys[0]}' must be a list of objects", field=keys[0])
    return value


@dataclass(frozen=True)
class FactIssue:
    """A hallucination finding: the output disagrees with the facts."""
    quote: str
    source: str = 'output'
    type: str = 'Other'  # Fabrication, Contradiction, Omission, Reasoning Error, Other
    reason: str = ""
    suggestion: str = ""
    replacement: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FactIssue':
        issue_type = _text(data, 'type')
        return cls(
            quote=_text(data, 'quote'),
            source=_source(data),
            type=issue_type if issue_type in FACT_TYPES else 'Other',
            reason=_text(data, 'reason'),
            suggestion=_text(data, 'suggestion'),
            replacement=_text(data, 'replacement')
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'quote': self.quote,
            'source': self.source,
            'type': self.type,
            'reason': self.reason,
            'suggestion': self.suggestion,
            'replacement': self.replacement
        }


@dataclass(frozen=True)
class ComplianceIssue:
    """An ad-law, risk or ethics finding."""
    quote: str
    source: str = 'output'
    type: str = 'Risk'
    severity: str = 'Medium'  # High, Medium, Low
    reason: str = ""
    suggestion: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ComplianceIssue':
        issue_type = _text(data, 'type') or 'Risk'
        severity = _text(data, 'severity') or 'Medium'
        if issue_type not in COMPLIANCE_TYPES or severity not in SEVERITIES:
            logger.debug(f"Unrecognised compliance type/severity kept as given: {issue_type}/{severity}")
        return cls(
            quote=_text(data, 'quote'),
            source=_source(data),
            type=issue_type,
            severity=severity,
            reason=_text(data, 'reason'),
            suggestion=_text(data, 'suggestion')
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'quote': self.quote,
            'source': self.source,
            'type': self.type,
            'severity': self.severity,
            'reason': self.reason,
            'suggestion': self.suggestion
        }


@dataclass(frozen=True)
class StrategyIssue:
    """A place where the output departs from the prompt's meta strategy."""
    rule: str
    quote: str
    source: str = 'output'
    violation: str = ""
    prompt_improvement: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StrategyIssue':
        return cls(
            rule=_text(data, 'rule'),
            quote=_text(data, 'quote'),
            source=_source(data),
            violation=_text(data, 'violation'),
            prompt_improvement=_text(data, 'promptImprovement', 'prompt_improvement')
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rule': self.rule,
            'quote': self.quote,
            'source': self.source,
            'violation': self.violation,
            'promptImprovement': self.prompt_improvement
        }


@dataclass(frozen=True)
class StrategyReport:
    """Meta strategy extracted from the prompt and how well it was followed."""
    meta_strategy: str = ""
    adherence_score: int = 0
    issues: List[StrategyIssue] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StrategyReport':
        if not isinstance(data, dict):
            raise ValidationError("'strategyReport' must be an object", field='strategyReport')
        return cls(
            meta_strategy=_text(data, 'metaStrategy', 'meta_strategy'),
            adherence_score=_score(data, 'adherenceScore', 'adherence_score'),
            issues=[StrategyIssue.from_dict(i) for i in _records(data, 'issues')]
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'metaStrategy': self.meta_strategy,
            'adherenceScore': self.adherence_score,
            'issues': [i.to_dict() for i in self.issues]
        }


@dataclass(frozen=True)
class UnifiedIssue:
    """
    One issue of any category, in the shape the annotation overlay reads.

    Attributes:
        id: Stable identifier (fact-0, strat-1, comp-2, ...)
        category: Fact, Strategy or Compliance
        quote: Literal text expected in the document
        source: Document the quote belongs to (output or reasoning)
        reason: Why this is an issue
        suggestion: How to address it
        reference_fix: Drop-in replacement text (fact issues only)
        rule: Violated strategy rule (strategy issues only)
        sub_type: Fact/compliance type, or 'Adherence'
    """
    id: str
    category: str
    quote: str
    source: str = 'output'
    reason: str = ""
    suggestion: str = ""
    reference_fix: Optional[str] = None
    rule: Optional[str] = None
    sub_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'category': self.category,
            'quote': self.quote,
            'source': self.source,
            'reason': self.reason,
            'suggestion': self.suggestion,
            'reference_fix': self.reference_fix,
            'rule': self.rule,
            'sub_type': self.sub_type
        }


@dataclass(frozen=True)
class AnalysisResult:
    """
    Audit result for one (facts, prompt, reasoning, output) submission.

    The optimisation fields stay empty until the second phase is merged
    with merge_optimization.
    """
    has_hallucination: bool
    score: int
    summary: str
    root_cause: str
    strategy_report: StrategyReport
    issues: List[FactIssue] = field(default_factory=list)
    compliance_issues: List[ComplianceIssue] = field(default_factory=list)
    prompt_suggestions: List[str] = field(default_factory=list)
    optimized_prompt: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AnalysisResult':
        """
        Parse a collaborator payload.

        Raises:
            ValidationError: If the payload is not an object or misses
                a required audit field
        """
        if not isinstance(data, dict):
            raise ValidationError("Analysis result must be an object", field='analysis')

        missing = [camel for camel, snake in REQUIRED_AUDIT_FIELDS
                   if _get(data, camel, snake) is None]
        if missing:
            raise ValidationError(
                f"Analysis result is missing: {', '.join(missing)}",
                field='analysis', missing=missing
            )

        suggestions = _get(data, 'promptSuggestions', 'prompt_suggestions', default=[])
        optimized = _get(data, 'optimizedPrompt', 'optimized_prompt')

        return cls(
            has_hallucination=bool(_get(data, 'hasHallucination', 'has_hallucination')),
            score=_score(data, 'score'),
            summary=_text(data, 'summary'),
            root_cause=_text(data, 'rootCause', 'root_cause'),
            strategy_report=StrategyReport.from_dict(_get(data, 'strategyReport', 'strategy_report')),
            issues=[FactIssue.from_dict(i) for i in _records(data, 'issues')],
            compliance_issues=[ComplianceIssue.from_dict(i)
                               for i in _records(data, 'complianceIssues', 'compliance_issues')],
            prompt_suggestions=[str(s) for s in suggestions] if isinstance(suggestions, list) else [],
            optimized_prompt=clean_optimized_prompt(optimized) if optimized is not None else None
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to the collaborator's camelCase shape."""
        data = {
            'hasHallucination': self.has_hallucination,
            'score': self.score,
            'summary': self.summary,
            'rootCause': self.root_cause,
            'strategyReport': self.strategy_report.to_dict(),
            'issues': [i.to_dict() for i in self.issues],
            'complianceIssues': [i.to_dict() for i in self.compliance_issues],
        }
        if self.optimized_prompt is not None:
            data['optimizedPrompt'] = self.optimized_prompt
            data['promptSuggestions'] = list(self.prompt_suggestions)
        return data

    @property
    def is_optimized(self) -> bool:
        return self.optimized_prompt is not None

    def merge_optimization(self, payload: Dict[str, Any]) -> 'AnalysisResult':
        """
        Fold the second-phase optimisation payload into a copy.

        Args:
            payload: {optimizedPrompt: str, promptSuggestions: [str]}

        Returns:
            New AnalysisResult carrying the optimised prompt
        """
        if not isinstance(payload, dict):
            raise ValidationError("Optimization payload must be an object", field='optimization')
        optimized = _get(payload, 'optimizedPrompt', 'optimized_prompt')
        if not isinstance(optimized, str):
            raise ValidationError("Optimization payload is missing optimizedPrompt", field='optimizedPrompt')
        suggestions = _get(payload, 'promptSuggestions', 'prompt_suggestions', default=[])
        if not isinstance(suggestions, list):
            raise ValidationError("promptSuggestions must be a list", field='promptSuggestions')

        return replace(
            self,
            optimized_prompt=clean_optimized_prompt(optimized),
            prompt_suggestions=[str(s) for s in suggestions]
        )

    def without_quote(self, quote: str) -> 'AnalysisResult':
        """
        Drop fact issues whose quote was just replaced by a fix.

        Strategy and compliance findings stay; they are not fixed by
        text replacement.
        """
        remaining = [i for i in self.issues if i.quote != quote]
        removed = len(self.issues) - len(remaining)
        if removed:
            logger.debug(f"Removed {removed} fixed issue(s)", removed=removed)
        return replace(self, issues=remaining)


def clean_optimized_prompt(text: str) -> str:
    """Strip a Markdown code fence wrapped around an optimised prompt."""
    text = text.strip()
    if text.startswith('```'):
        text = _FENCE_OPEN.sub('', text)
        text = _FENCE_CLOSE.sub('', text).strip()
    return text


def unify_issues(result: AnalysisResult) -> List[UnifiedIssue]:
    """
    Flatten all findings into one list.

    Order is fact issues, then strategy issues, then compliance issues;
    the annotation overlay gives earlier issues priority on overlaps.
    """
    unified: List[UnifiedIssue] = []

    for idx, issue in enumerate(result.issues):
        unified.append(UnifiedIssue(
            id=f"fact-{idx}",
            category=CATEGORY_FACT,
            quote=issue.quote,
            source=issue.source,
            reason=issue.reason,
            suggestion=issue.suggestion,
            reference_fix=issue.replacement,
            sub_type=issue.type
        ))

    for idx, issue in enumerate(result.strategy_report.issues):
        unified.append(UnifiedIssue(
            id=f"strat-{idx}",
            category=CATEGORY_STRATEGY,
            quote=issue.quote,
            source=issue.source,
            reason=issue.violation,
            suggestion=issue.prompt_improvement,
            rule=issue.rule,
            sub_type='Adherence'
        ))

    for idx, issue in enumerate(result.compliance_issues):
        unified.append(UnifiedIssue(
            id=f"comp-{idx}",
            category=CATEGORY_COMPLIANCE,
            quote=issue.quote,
            source=issue.source,
            reason=issue.reason,
            suggestion=issue.suggestion,
            sub_type=issue.type
        ))

    return unified


def issues_for_source(issues: Iterable[UnifiedIssue], source: str) -> List[UnifiedIssue]:
    """Issues whose quote belongs to the given document (output or reasoning)."""
    if source not in SOURCES:
        raise ValidationError(f"Unknown source '{source}'. Use 'output' or 'reasoning'", field='source')
    return [i for i in issues if i.source == source]

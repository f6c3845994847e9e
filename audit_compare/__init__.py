"""
Audit Comparison Module v1.0.0
==============================
Prompt diffs and issue annotation overlays for reviewing model audits.

Features:
- Token-level diff of an original prompt against its optimised revision
- Quote-to-span matching of audit issues inside the output or reasoning trace
- Single-occurrence fix application
- Parsing of two-phase analysis results into a unified issue list
"""

__version__ = "1.0.0"

from .tokenizer import tokenize
from .models import (
    DiffKind,
    DiffPart,
    DiffResult,
    Match,
    AnnotatedSegment
)
from .differ import PromptDiffer, diff, compute_diff
from .annotator import AnnotationMatcher, annotate, apply_fix, render_segments_html
from .issues import AnalysisResult, UnifiedIssue, unify_issues, issues_for_source
from .routes import audit_blueprint

__all__ = [
    'tokenize',
    'DiffKind',
    'DiffPart',
    'DiffResult',
    'Match',
    'AnnotatedSegment',
    'PromptDiffer',
    'diff',
    'compute_diff',
    'AnnotationMatcher',
    'annotate',
    'apply_fix',
    'render_segments_html',
    'AnalysisResult',
    'UnifiedIssue',
    'unify_issues',
    'issues_for_source',
    'audit_blueprint'
]

"""
Audit Comparison Flask Routes
=============================
JSON endpoints for prompt diffs, issue annotation overlays and fixes.

v1.0.0: Initial implementation
"""

import time
from functools import wraps
from typing import Any, Dict, List, Optional

from flask import Blueprint, request, jsonify, g

from config_logging import get_logger, AuditReviewError, ValidationError
from .differ import PromptDiffer
from .annotator import AnnotationMatcher, apply_fix, render_segments_html
from .issues import AnalysisResult, unify_issues, issues_for_source

logger = get_logger('audit_compare')

audit_blueprint = Blueprint('audit_compare', __name__)


# =============================================================================
# STANDARDIZED ERROR HANDLING DECORATOR
# =============================================================================

def handle_audit_errors(f):
    """
    Decorator for standardized API error handling in audit routes.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        start_time = time.time()
        try:
            result = f(*args, **kwargs)

            elapsed = time.time() - start_time
            if elapsed > 2.0:
                logger.warning(f"Slow audit API call: {f.__name__} took {elapsed:.1f}s")

            return result

        except AuditReviewError as e:
            if e.status_code < 500:
                logger.warning(f"{e.code} in {f.__name__}: {e}")
            else:
                logger.error(f"{e.code} in {f.__name__}: {e}", exc_info=True)
            return jsonify({
                'success': False,
                'error': {
                    'code': e.code,
                    'message': e.message,
                    'details': e.details,
                    'correlation_id': getattr(g, 'correlation_id', 'unknown')
                }
            }), e.status_code
        except Exception as e:
            logger.exception(f"Unexpected error in {f.__name__}: {e}")
            return jsonify({
                'success': False,
                'error': {
                    'code': 'INTERNAL_ERROR',
                    'message': 'An unexpected error occurred',
                    'correlation_id': getattr(g, 'correlation_id', 'unknown')
                }
            }), 500

    return decorated


# =============================================================================
# REQUEST HELPERS
# =============================================================================

def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _require_text(data: Dict[str, Any], key: str, allow_empty: bool = True) -> str:
    """Fetch a required string field from the request body."""
    value = data.get(key)
    if not isinstance(value, str):
        raise ValidationError(f"'{key}' is required and must be a string", field=key)
    if not allow_empty and not value.strip():
        raise ValidationError(f"'{key}' must not be empty", field=key)
    return value


def _optional_text(data: Dict[str, Any], key: str) -> Optional[str]:
    """Fetch an optional string field; absent or null gives None."""
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"'{key}' must be a string", field=key)
    return value


def _issue_list(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Validate plain issue records: objects whose quote and category are strings."""
    raw_issues = data.get('issues', [])
    if not isinstance(raw_issues, list) or not all(isinstance(i, dict) for i in raw_issues):
        raise ValidationError("'issues' must be a list of objects", field='issues')
    for position, issue in enumerate(raw_issues):
        for key in ('quote', 'category'):
            value = issue.get(key)
            if value is not None and not isinstance(value, str):
                raise ValidationError(
                    f"issues[{position}].{key} must be a string",
                    field='issues', index=position, key=key
                )
    return raw_issues


# =============================================================================
# API ENDPOINTS
# =============================================================================

@audit_blueprint.route('/diff', methods=['POST'])
@handle_audit_errors
def compute_diff():
    """
    Diff the original prompt against the edited optimised prompt.

    Request body:
        { original: str, revised: str, strategy?: 'lookahead' | 'optimal' }

    Returns:
        {
            success: true,
            diff: {
                strategy, parts: [{kind, text}], old_html, new_html,
                stats: { total_parts, equal, inserted, deleted, total_changes }
            }
        }
    """
    data = _json_body()
    original = _require_text(data, 'original')
    revised = _require_text(data, 'revised')

    differ = PromptDiffer(strategy=_optional_text(data, 'strategy'))
    result = differ.compare(original, revised)

    return jsonify({
        'success': True,
        'diff': result.to_dict()
    })


@audit_blueprint.route('/annotate', methods=['POST'])
@handle_audit_errors
def annotate_document():
    """
    Overlay issue quotes on a document.

    Request body:
        {
            document: str,
            analysis?: AnalysisResult,   # unified, then filtered by source
            issues?: [{id, quote, category}],  # used as given
            source?: 'output' | 'reasoning',
            active_issue_id?: str
        }

    Returns:
        { success: true, segments: [...], matches: [...], html: str, issue_count: int }
    """
    data = _json_body()
    document = _require_text(data, 'document', allow_empty=False)
    source = _optional_text(data, 'source') or 'output'
    active_issue_id = _optional_text(data, 'active_issue_id')

    if 'analysis' in data:
        analysis = AnalysisResult.from_dict(data['analysis'])
        issues = issues_for_source(unify_issues(analysis), source)
    else:
        issues = _issue_list(data)

    matcher = AnnotationMatcher()
    matches = matcher.find_matches(document, issues)
    segments = matcher.segments(document, matches)

    logger.info(f"Annotated {source} document: {len(matches)} matches for {len(issues)} issues")

    return jsonify({
        'success': True,
        'segments': [s.to_dict() for s in segments],
        'matches': [m.to_dict() for m in matches],
        'html': render_segments_html(segments, active_issue_id),
        'issue_count': len(issues)
    })


@audit_blueprint.route('/apply-fix', methods=['POST'])
@handle_audit_errors
def apply_fix_route():
    """
    Replace the first occurrence of a quote and drop the fixed issues.

    Request body:
        { document: str, quote: str, replacement: str, analysis?: AnalysisResult }

    Returns:
        { success: true, document: str, changed: bool, analysis?: AnalysisResult }
    """
    data = _json_body()
    document = _require_text(data, 'document', allow_empty=False)
    quote = _require_text(data, 'quote', allow_empty=False)
    replacement = _require_text(data, 'replacement')

    fixed = apply_fix(document, quote, replacement)
    changed = fixed != document
    if not changed:
        logger.info("Fix quote not found in document; document unchanged")

    response = {
        'success': True,
        'document': fixed,
        'changed': changed
    }
    if 'analysis' in data:
        analysis = AnalysisResult.from_dict(data['analysis'])
        response['analysis'] = analysis.without_quote(quote).to_dict()

    return jsonify(response)


@audit_blueprint.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    from . import __version__

    return jsonify({
        'success': True,
        'module': 'audit_compare',
        'version': __version__,
        'status': 'healthy'
    })

"""
Issue Annotation Matcher v1.0.0
===============================
Maps issue quotes onto their literal occurrences in a document and
linearizes the result into plain and highlighted segments.

Overlaps are resolved first-registered-wins: a candidate whose start
falls inside an accepted match is dropped, as is one that starts earlier
but runs into an accepted match. Registration follows the issue list
order, then each quote's left-to-right occurrences, so the issue listed
earlier claims a contested region.

Quotes that do not occur are skipped silently. Upstream quotes are often
paraphrased and a miss is not an error.
"""

import re
import html
from typing import Any, Iterable, List, Optional

from config_logging import get_logger
from .models import Match, AnnotatedSegment

logger = get_logger('audit_compare.annotator')


def _issue_field(issue: Any, name: str, default: str = "") -> str:
    """Read a field from an issue object or a plain dict."""
    if isinstance(issue, dict):
        value = issue.get(name, default)
    else:
        value = getattr(issue, name, default)
    return value if value is not None else default


class AnnotationMatcher:
    """
    Locates issue quotes inside a document.

    Issues may be any objects exposing ``id``, ``quote`` and ``category``
    attributes (e.g. UnifiedIssue) or dicts with the same keys. They are
    only read.
    """

    def find_matches(self, document: str, issues: Iterable[Any]) -> List[Match]:
        """
        Locate every accepted, non-overlapping match, sorted by start.

        Args:
            document: Text being annotated
            issues: Issues in priority order

        Returns:
            List of Match objects sorted by start offset
        """
        accepted: List[Match] = []
        if not document:
            return accepted

        for position, issue in enumerate(issues):
            quote = _issue_field(issue, 'quote')
            if not quote:
                continue
            raw_id = _issue_field(issue, 'id')
            issue_id = f"issue-{position}" if raw_id == "" else str(raw_id)
            category = _issue_field(issue, 'category')

            found = 0
            for occurrence in re.finditer(re.escape(quote), document):
                found += 1
                start, end = occurrence.span()
                if any(m.overlaps(start, end) for m in accepted):
                    continue
                accepted.append(Match(
                    start=start,
                    end=end,
                    issue_id=issue_id,
                    category=category
                ))

            if not found:
                logger.debug(f"Quote for issue {issue_id} not found in document", issue_id=issue_id)

        # Stable: equal starts keep registration order
        accepted.sort(key=lambda m: m.start)
        return accepted

    def segments(self, document: str, matches: List[Match]) -> List[AnnotatedSegment]:
        """
        Walk the document emitting plain gaps and matched slices.

        Args:
            document: Annotated text
            matches: Sorted matches from find_matches

        Returns:
            Segments covering the whole document
        """
        parts: List[AnnotatedSegment] = []
        last_index = 0

        for match in matches:
            if match.start < last_index:
                # Overlapping input; the earlier-starting match keeps the region
                continue
            if match.start > last_index:
                parts.append(AnnotatedSegment(document[last_index:match.start]))
            parts.append(AnnotatedSegment(document[match.start:match.end], match))
            last_index = match.end

        if last_index < len(document):
            parts.append(AnnotatedSegment(document[last_index:]))

        return parts

    def annotate(self, document: str, issues: Iterable[Any]) -> List[AnnotatedSegment]:
        """
        Annotate a document with issue matches.

        Args:
            document: Text being annotated
            issues: Issues in priority order

        Returns:
            Ordered segments whose texts join back to the document
        """
        matches = self.find_matches(document, issues)
        logger.debug(f"Annotated document of {len(document or '')} chars with {len(matches)} matches")
        return self.segments(document or "", matches)


def annotate(document: str, issues: Iterable[Any]) -> List[AnnotatedSegment]:
    """Annotate a document with issue matches."""
    return AnnotationMatcher().annotate(document, issues)


def apply_fix(document: str, quote: str, replacement: str) -> str:
    """
    Replace the first literal occurrence of quote with replacement.

    Later occurrences are left untouched. A missing or empty quote
    leaves the document unchanged.

    Args:
        document: Text to fix
        quote: Exact text to replace
        replacement: Literal replacement text

    Returns:
        The fixed document
    """
    if not quote or quote not in document:
        return document
    return document.replace(quote, replacement, 1)


def render_segments_html(
    segments: List[AnnotatedSegment],
    active_issue_id: Optional[str] = None
) -> str:
    """
    Render segments as HTML spans.

    Matched segments get ``aud-match aud-match-<category>`` classes and a
    ``data-issue-id`` attribute; the active issue also gets
    ``aud-match-active``.
    """
    html_parts = []
    for segment in segments:
        escaped = html.escape(segment.text)
        match = segment.match
        if match is None:
            html_parts.append(escaped)
            continue

        category = re.sub(r'[^a-z0-9]+', '-', (match.category or 'other').lower()).strip('-') or 'other'
        classes = f"aud-match aud-match-{category}"
        if active_issue_id is not None and match.issue_id == active_issue_id:
            classes += " aud-match-active"
        html_parts.append(
            f'<span class="{classes}" data-issue-id="{html.escape(match.issue_id, quote=True)}">'
            f'{escaped}</span>'
        )
    return ''.join(html_parts)

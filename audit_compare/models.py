"""
Audit Comparison Models v1.0.0
==============================
Data classes for prompt diffs and issue annotation overlays.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Optional, Any


class DiffKind(str, Enum):
    """Tag carried by every diff part."""
    EQUAL = 'equal'
    INSERTED = 'inserted'
    DELETED = 'deleted'


@dataclass(frozen=True)
class DiffPart:
    """
    One tagged token of an aligned comparison.

    Attributes:
        kind: equal, inserted or deleted
        text: The token text
    """
    kind: DiffKind
    text: str

    @property
    def in_old(self) -> bool:
        """Whether this part belongs to the original text."""
        return self.kind is not DiffKind.INSERTED

    @property
    def in_new(self) -> bool:
        """Whether this part belongs to the revised text."""
        return self.kind is not DiffKind.DELETED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {'kind': self.kind.value, 'text': self.text}


@dataclass
class DiffResult:
    """
    Complete diff between an original and a revised prompt.

    Attributes:
        parts: Ordered diff parts covering both texts
        strategy: Alignment strategy that produced the parts
        old_html: Original panel markup (deleted tokens struck out)
        new_html: Revised panel markup (inserted tokens highlighted)
        stats: Part counts by kind
    """
    parts: List[DiffPart] = field(default_factory=list)
    strategy: str = 'lookahead'
    old_html: str = ""
    new_html: str = ""
    stats: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        """Compute stats if not provided."""
        if not self.stats:
            counts = {kind: 0 for kind in DiffKind}
            for part in self.parts:
                counts[part.kind] += 1
            self.stats = {
                'total_parts': len(self.parts),
                'equal': counts[DiffKind.EQUAL],
                'inserted': counts[DiffKind.INSERTED],
                'deleted': counts[DiffKind.DELETED],
                'total_changes': counts[DiffKind.INSERTED] + counts[DiffKind.DELETED]
            }

    @property
    def old_text(self) -> str:
        """Reconstruct the original text."""
        return ''.join(p.text for p in self.parts if p.in_old)

    @property
    def new_text(self) -> str:
        """Reconstruct the revised text."""
        return ''.join(p.text for p in self.parts if p.in_new)

    @property
    def has_changes(self) -> bool:
        return self.stats.get('total_changes', 0) > 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'strategy': self.strategy,
            'parts': [p.to_dict() for p in self.parts],
            'old_html': self.old_html,
            'new_html': self.new_html,
            'stats': self.stats
        }


@dataclass(frozen=True)
class Match:
    """
    One located occurrence of an issue quote inside a document.

    Attributes:
        start: Character offset of the first matched character
        end: Offset one past the last matched character
        issue_id: Identifier of the issue that owns this match
        category: Issue category (Fact, Strategy, Compliance, ...)
    """
    start: int
    end: int
    issue_id: str
    category: str = ""

    def overlaps(self, start: int, end: int) -> bool:
        """Whether [start, end) shares any offset with this match."""
        return start < self.end and self.start < end

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'start': self.start,
            'end': self.end,
            'issue_id': self.issue_id,
            'category': self.category
        }


@dataclass(frozen=True)
class AnnotatedSegment:
    """A contiguous slice of a document, plain or tied to one match."""
    text: str
    match: Optional[Match] = None

    @property
    def is_match(self) -> bool:
        return self.match is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'text': self.text,
            'match': self.match.to_dict() if self.match else None
        }

"""
Prompt Differ v1.0.0
====================
Token-level diff between an original prompt and its revision.

Two alignment strategies share the tokenizer's token model:

- lookahead: single left-to-right pass with a bounded resync window.
  Not edit-distance optimal, but linear in practice and visually stable.
- optimal: diff-match-patch run over tokens mapped to private-use
  characters, one character per distinct token.

Every part holds exactly one token, so joining equal+deleted parts gives
back the original and joining equal+inserted parts gives the revision.
"""

import html
from typing import List, Tuple, Optional, Dict

import diff_match_patch as dmp_module

from config_logging import get_logger, get_config, ValidationError, ProcessingError, DIFF_STRATEGIES
from .models import DiffKind, DiffPart, DiffResult
from .tokenizer import tokenize

logger = get_logger('audit_compare.differ')

# Resync offsets k = 1 .. LOOKAHEAD_WINDOW - 1 are tried
LOOKAHEAD_WINDOW = 15

# Supplementary private use planes 15-16
_TOKEN_CHAR_BASE = 0xF0000
_MAX_DISTINCT_TOKENS = 0x110000 - _TOKEN_CHAR_BASE

_DMP_OPS = {
    dmp_module.diff_match_patch.DIFF_EQUAL: DiffKind.EQUAL,
    dmp_module.diff_match_patch.DIFF_DELETE: DiffKind.DELETED,
    dmp_module.diff_match_patch.DIFF_INSERT: DiffKind.INSERTED,
}


class PromptDiffer:
    """
    Prompt comparison engine producing token-level diff parts
    and side-by-side panel markup.
    """

    def __init__(self, strategy: Optional[str] = None, lookahead: int = LOOKAHEAD_WINDOW):
        """
        Initialize the differ.

        Args:
            strategy: 'lookahead' or 'optimal' (defaults to configuration)
            lookahead: Size of the resync window for the lookahead strategy
        """
        if strategy is not None and not isinstance(strategy, str):
            raise ValidationError("Diff strategy must be a string", field='strategy')
        strategy = (strategy or get_config().diff_strategy).strip().lower()
        if strategy not in DIFF_STRATEGIES:
            raise ValidationError(
                f"Unknown diff strategy '{strategy}'. Use one of: {', '.join(DIFF_STRATEGIES)}",
                field='strategy'
            )
        if lookahead < 1:
            raise ValidationError("Lookahead window must be at least 1", field='lookahead')

        self.strategy = strategy
        self.lookahead = lookahead

        self.dmp = dmp_module.diff_match_patch()
        self.dmp.Diff_Timeout = 2.0  # Max 2 seconds per diff

    def diff(self, old_text: str, new_text: str) -> List[DiffPart]:
        """
        Compute the ordered diff parts between two texts.

        Args:
            old_text: Original text
            new_text: Revised text

        Returns:
            List of DiffPart, one token each
        """
        old_tokens = tokenize(old_text)
        new_tokens = tokenize(new_text)
        logger.debug(f"Token counts: old={len(old_tokens)}, new={len(new_tokens)}, strategy={self.strategy}")

        if self.strategy == 'optimal':
            return self._diff_optimal(old_tokens, new_tokens)
        return self._diff_lookahead(old_tokens, new_tokens)

    def compare(self, old_text: str, new_text: str) -> DiffResult:
        """
        Perform full prompt comparison.

        Args:
            old_text: Original prompt
            new_text: Revised prompt

        Returns:
            DiffResult with parts, rendered panels and statistics
        """
        with logger.log_operation('prompt_diff', strategy=self.strategy):
            parts = self.diff(old_text, new_text)
            result = DiffResult(
                parts=parts,
                strategy=self.strategy,
                old_html=render_old_html(parts),
                new_html=render_new_html(parts)
            )

        logger.info(f"Diff complete: {result.stats['total_parts']} parts, "
                    f"+{result.stats['inserted']} -{result.stats['deleted']}")
        return result

    def _diff_lookahead(self, old_tokens: List[str], new_tokens: List[str]) -> List[DiffPart]:
        """
        Single-pass alignment with bounded forward resynchronisation.

        On a mismatch the window is scanned for the smallest k where either
        old[i+k] == new[j] (k deletions) or new[j+k] == old[i] (k insertions).
        At equal k the deletion side wins. Without a resync point the pair
        is emitted as a one-for-one substitution.
        """
        parts: List[DiffPart] = []
        i = 0
        j = 0

        while i < len(old_tokens) or j < len(new_tokens):
            if i >= len(old_tokens):
                parts.append(DiffPart(DiffKind.INSERTED, new_tokens[j]))
                j += 1
            elif j >= len(new_tokens):
                parts.append(DiffPart(DiffKind.DELETED, old_tokens[i]))
                i += 1
            elif old_tokens[i] == new_tokens[j]:
                parts.append(DiffPart(DiffKind.EQUAL, old_tokens[i]))
                i += 1
                j += 1
            else:
                kind, k = self._find_sync(old_tokens, new_tokens, i, j)
                if kind is DiffKind.DELETED:
                    parts.extend(DiffPart(DiffKind.DELETED, t) for t in old_tokens[i:i + k])
                    i += k
                elif kind is DiffKind.INSERTED:
                    parts.extend(DiffPart(DiffKind.INSERTED, t) for t in new_tokens[j:j + k])
                    j += k
                else:
                    parts.append(DiffPart(DiffKind.DELETED, old_tokens[i]))
                    parts.append(DiffPart(DiffKind.INSERTED, new_tokens[j]))
                    i += 1
                    j += 1

        return parts

    def _find_sync(
        self,
        old_tokens: List[str],
        new_tokens: List[str],
        i: int,
        j: int
    ) -> Tuple[Optional[DiffKind], int]:
        """
        Find the nearest resync point inside the lookahead window.

        Returns:
            (DiffKind.DELETED or DiffKind.INSERTED, k), or (None, 0)
        """
        for k in range(1, self.lookahead):
            if i + k < len(old_tokens) and old_tokens[i + k] == new_tokens[j]:
                return DiffKind.DELETED, k
            if j + k < len(new_tokens) and new_tokens[j + k] == old_tokens[i]:
                return DiffKind.INSERTED, k
        return None, 0

    def _diff_optimal(self, old_tokens: List[str], new_tokens: List[str]) -> List[DiffPart]:
        """
        Shortest-edit-script diff using diff-match-patch over tokens.

        Each distinct token is munged into one private-use character so
        the character diff is a token diff, then decoded token by token.
        """
        token_array: List[str] = []
        token_hash: Dict[str, int] = {}

        def tokens_to_chars(tokens: List[str]) -> str:
            chars = []
            for token in tokens:
                if token not in token_hash:
                    token_hash[token] = len(token_array)
                    token_array.append(token)
                chars.append(chr(_TOKEN_CHAR_BASE + token_hash[token]))
            return ''.join(chars)

        if len(set(old_tokens) | set(new_tokens)) > _MAX_DISTINCT_TOKENS:
            logger.warning("Too many distinct tokens for optimal diff, using lookahead alignment")
            return self._diff_lookahead(old_tokens, new_tokens)

        chars1 = tokens_to_chars(old_tokens)
        chars2 = tokens_to_chars(new_tokens)
        diffs = self.dmp.diff_main(chars1, chars2, False)

        parts: List[DiffPart] = []
        for op, text in diffs:
            kind = _DMP_OPS[op]
            for char in text:
                parts.append(DiffPart(kind, token_array[ord(char) - _TOKEN_CHAR_BASE]))

        if (sum(1 for p in parts if p.in_old) != len(old_tokens)
                or sum(1 for p in parts if p.in_new) != len(new_tokens)):
            raise ProcessingError("Token diff does not cover both inputs", stage='optimal_diff')

        return parts


def render_old_html(parts: List[DiffPart]) -> str:
    """Original panel: equal text plus struck-out deletions."""
    html_parts = []
    for part in parts:
        escaped = html.escape(part.text)
        if part.kind is DiffKind.EQUAL:
            html_parts.append(escaped)
        elif part.kind is DiffKind.DELETED:
            html_parts.append(f'<span class="aud-word-deleted">{escaped}</span>')
    return ''.join(html_parts)


def render_new_html(parts: List[DiffPart]) -> str:
    """Revised panel: equal text plus highlighted insertions."""
    html_parts = []
    for part in parts:
        escaped = html.escape(part.text)
        if part.kind is DiffKind.EQUAL:
            html_parts.append(escaped)
        elif part.kind is DiffKind.INSERTED:
            html_parts.append(f'<span class="aud-word-added">{escaped}</span>')
    return ''.join(html_parts)


# Convenience functions
def diff(old_text: str, new_text: str, strategy: Optional[str] = None) -> List[DiffPart]:
    """Compute diff parts between two texts."""
    return PromptDiffer(strategy=strategy).diff(old_text, new_text)


def compute_diff(old_text: str, new_text: str, **kwargs) -> DiffResult:
    """
    Compute a full DiffResult between two texts.

    Args:
        old_text: Original text
        new_text: Revised text
        **kwargs: Passed to PromptDiffer

    Returns:
        DiffResult with parts, panels and statistics
    """
    return PromptDiffer(**kwargs).compare(old_text, new_text)

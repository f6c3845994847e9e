"""
Prompt Tokenizer
================
Splits text into words, punctuation marks and whitespace runs.

Tokens are the comparison unit for the prompt differ. Delimiters are kept
as their own tokens so joining the output reproduces the input exactly.
"""

import re
from typing import List

# Whitespace runs, or one character of . , ; ? ! ( ) [ ] { }
DELIMITER_PATTERN = re.compile(r'(\s+|[.,;?!()\[\]{}])')


def tokenize(text: str) -> List[str]:
    """
    Tokenize text into words, punctuation and whitespace.

    Args:
        text: Text to tokenize

    Returns:
        List of non-empty tokens in document order
    """
    if not text:
        return []
    return [token for token in DELIMITER_PATTERN.split(text) if token]

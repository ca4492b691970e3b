# docmerge/resolver.py

import logging
import re
from typing import Dict, Iterable, List, Tuple

from docmerge.formatter import format_value
from docmerge.table_reader import Table

logger = logging.getLogger(__name__)


TOKEN_PREFIX = "@"

# Anything that looks like a placeholder; used only to report unmatched tokens.
TOKEN_RE = re.compile(r"@([^\s@]+)")


class PlaceholderResolver:
    """
    Resolves ``@field`` placeholders for one row of a Table.

    Resolution rules:
    1. A token is the literal text ``@`` + field name, matched case-sensitively
       with no word-boundary check
    2. Every occurrence is replaced by the formatted value of the row
    3. A row index past the end of a field's values resolves to ""

    Fields are applied in table order. When one field name is a prefix of
    another (``@Name`` / ``@NameFull``) the result depends on that order; see
    overlapping_fields().
    """

    def __init__(self, table: Table, row_index: int):
        self.table = table
        self.row_index = row_index
        self._tokens: List[Tuple[str, str]] = [
            (TOKEN_PREFIX + field, field) for field in table.fields
        ]
        self._cache: Dict[str, str] = {}

    # -------------------------
    # Value lookup
    # -------------------------

    def value_for(self, field: str) -> str:
        if field in self._cache:
            return self._cache[field]

        if self.table.has_value(field, self.row_index):
            value = format_value(self.table.value(field, self.row_index))
        else:
            logger.debug(
                "Row index %d is out of range for header '%s'", self.row_index, field
            )
            value = ""

        self._cache[field] = value
        return value

    def values(self) -> Dict[str, str]:
        return {field: self.value_for(field) for field in self.table.fields}

    # -------------------------
    # Substitution
    # -------------------------

    def resolve_text(self, text: str) -> str:
        if not text or TOKEN_PREFIX not in text:
            return text or ""

        for token, field in self._tokens:
            if token in text:
                text = text.replace(token, self.value_for(field))
        return text

    def apply(self, text_nodes: Iterable) -> int:
        """
        Substitute placeholders in place on a sequence of ``w:t`` elements.

        Returns the number of text nodes whose content changed.
        """
        changed = 0
        for node in text_nodes:
            original = node.text
            if not original:
                continue
            resolved = self.resolve_text(original)
            if resolved != original:
                node.text = resolved
                changed += 1
        return changed


# -------------------------
# Token analysis
# -------------------------

def overlapping_fields(fields: Iterable[str]) -> List[Tuple[str, str]]:
    """Pairs (shorter, longer) where ``@shorter`` is a prefix of ``@longer``."""
    names = list(fields)
    pairs = []
    for a in names:
        for b in names:
            if a != b and b.startswith(a):
                pairs.append((a, b))
    return pairs


def unmatched_tokens(text: str, fields: Iterable[str]) -> List[str]:
    """
    Tokens in ``text`` that no field resolves.

    A token counts as matched when some field name is a prefix of it, since
    substitution has no word boundaries ("@Name," still resolves @Name).
    """
    names = list(fields)
    out: List[str] = []
    for m in TOKEN_RE.finditer(text or ""):
        word = m.group(1)
        if any(word.startswith(name) for name in names):
            continue
        if word not in out:
            out.append(word)
    return out

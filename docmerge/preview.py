# docmerge/preview.py

from typing import List, Optional

from docmerge.resolver import PlaceholderResolver, TOKEN_PREFIX, unmatched_tokens
from docmerge.table_reader import Table
from docmerge.template_store import TemplateBody


# ============================================================
# helpers
# ============================================================

def _referenced_fields(text: str, fields: List[str]) -> List[str]:
    return [f for f in fields if TOKEN_PREFIX + f in text]


# ============================================================
# template scan
# ============================================================

def scan_template(template: TemplateBody, table: Table) -> dict:
    """
    Report which fields a template uses.

    Returns dict with keys:
        used        fields whose token appears in the template
        unused      fields never referenced
        unmatched   @tokens no field resolves
    """
    text = template.text()
    used = _referenced_fields(text, table.fields)
    return {
        "used": used,
        "unused": [f for f in table.fields if f not in used],
        "unmatched": unmatched_tokens(text, table.fields),
    }


# ============================================================
# preview row construction
# ============================================================

def build_preview_rows(
    table: Table,
    template: Optional[TemplateBody] = None,
    *,
    limit: Optional[int] = None,
) -> List[dict]:
    """
    Build one preview entry per row that a merge would process.

    Returns list of dicts with keys:
        row        1-based row number (matches output file suffix)
        values     field -> substituted value
        missing    fields with no value at this row (substituted as "")
        text       template text after substitution (only with a template)
    """
    out: List[dict] = []
    total = table.row_count if limit is None else min(limit, table.row_count)

    for i in range(total):
        resolver = PlaceholderResolver(table, i)
        entry = {
            "row": i + 1,
            "values": resolver.values(),
            "missing": [f for f in table.fields if not table.has_value(f, i)],
        }
        if template is not None:
            clone = template.clone()
            resolver.apply(clone.text_nodes())
            entry["text"] = clone.text()
        out.append(entry)

    return out

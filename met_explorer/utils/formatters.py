"""Text formatting for Met Explorer.

Provides formatters for:
- object detail text (CLI output and the "add to conversation" payload)
- the visible-results summary sent to the host
- result-card tables for the terminal
"""

from typing import List, Optional, Sequence

from met_explorer.core.data_models import ResultCard, SearchRequest, string_or_fallback
from met_explorer.core.schemas import Department, ObjectRecord

RESULTS_CONTEXT_FOOTER = [
    "These results are already available, no need to call search-museum-objects for this data.",
    "In your response, state explicitly that you can see the current visible results.",
    "Say this naturally in your own words (no fixed template sentence required).",
    "You can curate recommendations directly from these visible results and cite "
    "titles/object IDs from this list.",
]


def format_object_details(record: ObjectRecord, header: Optional[str] = None) -> str:
    """Format an object record as ``Label: value`` lines.

    Empty fields are omitted.  ``header``, when given, becomes the first line.
    """
    lines: List[str] = [header] if header else []
    prefix = "- " if header else ""

    fields = [
        ("Object ID", str(record.object_id)),
        ("Title", string_or_fallback(record.title, "Untitled")),
        ("Artist", string_or_fallback(record.artist_display_name, "Unknown artist")),
        ("Artist Bio", record.artist_display_bio),
        ("Department", record.department),
        ("Date", record.object_date),
        ("Medium", record.medium),
        ("Dimensions", record.dimensions),
        ("Credit Line", record.credit_line),
        ("Primary Image URL", record.primary_image),
        ("Object URL", record.object_url),
    ]
    for label, value in fields:
        if value:
            lines.append(f"{prefix}{label}: {value}")

    terms = record.tag_terms
    if terms:
        lines.append(f"{prefix}Tags: {', '.join(terms)}")

    return "\n".join(lines)


def format_results_context(
    request: SearchRequest,
    cards: Sequence[ResultCard],
    page: int,
    total_pages: int,
    total_results: int,
) -> str:
    """Summarize the visible results page for the host's model context."""
    result_lines = "\n".join(
        f"- {card.object_id} | {card.title} | {card.artist_display_name}" for card in cards
    )
    return "\n".join(
        [
            f'Met Explorer results for Query: "{request.q}"',
            f"Page: {page}/{max(total_pages, 1)} ({total_results} total results)",
            "",
            result_lines,
            "",
            *RESULTS_CONTEXT_FOOTER,
        ]
    )


def format_cards_table(cards: Sequence[ResultCard]) -> str:
    """Render cards as a fixed-width table for terminal output."""
    if not cards:
        return "(no results)"

    rows = [("ID", "Title", "Artist", "Department")]
    rows.extend(
        (str(card.object_id), card.title, card.artist_display_name, card.department)
        for card in cards
    )
    widths = [min(max(len(row[i]) for row in rows), 48) for i in range(4)]

    def fit(text: str, width: int) -> str:
        return text if len(text) <= width else text[: width - 1] + "…"

    lines = []
    for n, row in enumerate(rows):
        lines.append("  ".join(fit(col, w).ljust(w) for col, w in zip(row, widths)).rstrip())
        if n == 0:
            lines.append("  ".join("-" * w for w in widths))
    return "\n".join(lines)


def format_departments(departments: Sequence[Department]) -> str:
    return "\n".join(
        f"Department ID: {d.department_id}, Display Name: {d.display_name}" for d in departments
    )

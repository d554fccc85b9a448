"""Tolerant readers for analysis records and search result sets.

Records are kept exactly as the agent produced them.  These helpers give
consumers a stable view: absent collections read as empty lists, and
collection entries that are not mappings are skipped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

COLLECTION_FIELDS: dict[str, tuple[str, ...]] = {
    "technical_decisions": ("decision", "context", "rationale"),
    "action_items": ("item", "owner", "deadline", "priority", "status"),
    "risks_and_blockers": ("description", "severity", "impact", "mitigation"),
    "client_requirements": ("requirement", "source", "priority"),
    "architecture_references": ("reference", "context"),
    "open_items": ("item", "type", "assigned_to"),
}

METADATA_FIELDS = (
    "title",
    "date_time",
    "duration_minutes",
    "organizer",
    "attendee_count",
    "timezone",
)

SEARCH_RESULT_FIELDS = (
    "meeting_title",
    "meeting_date",
    "relevance_score",
    "matching_section",
    "excerpt",
)


def collection(record: Any, name: str) -> list[dict]:
    if not isinstance(record, dict):
        return []
    value = record.get(name)
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]


def metadata(record: Any) -> dict:
    if not isinstance(record, dict):
        return {}
    value = record.get("meeting_metadata")
    if not isinstance(value, dict):
        return {}
    return {key: value.get(key) for key in METADATA_FIELDS}


def summary_text(record: Any) -> str:
    if not isinstance(record, dict):
        return ""
    value = record.get("summary")
    return value if isinstance(value, str) else ""


def collection_counts(record: Any) -> dict[str, int]:
    """Entry count per collection, used for logging and API overviews."""
    return {name: len(collection(record, name)) for name in COLLECTION_FIELDS}


def analysis_view(record: Any) -> dict:
    """Shape a record for display with every collection present."""
    view = {
        "meeting_metadata": metadata(record),
        "summary": summary_text(record),
    }
    for name in COLLECTION_FIELDS:
        view[name] = collection(record, name)
    return view


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


@dataclass
class SearchResultSet:
    """One search response.  ``raw`` keeps the mapping the agent returned."""

    query: str
    total_results: int
    results: list[dict]
    suggested_refinements: list[str]
    raw: dict

    @classmethod
    def from_record(cls, record: dict, query: str = "") -> "SearchResultSet":
        results = []
        raw_results = record.get("results")
        for entry in raw_results if isinstance(raw_results, list) else []:
            if not isinstance(entry, dict):
                continue
            shaped = {name: entry.get(name) for name in SEARCH_RESULT_FIELDS}
            shaped["key_participants"] = _string_list(entry.get("key_participants"))
            results.append(shaped)
        total = record.get("total_results")
        if not isinstance(total, int) or isinstance(total, bool):
            total = len(results)
        reported_query = record.get("query")
        return cls(
            query=reported_query if isinstance(reported_query, str) and reported_query else query,
            total_results=total,
            results=results,
            suggested_refinements=_string_list(record.get("suggested_refinements")),
            raw=record,
        )

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "total_results": self.total_results,
            "results": self.results,
            "suggested_refinements": self.suggested_refinements,
        }

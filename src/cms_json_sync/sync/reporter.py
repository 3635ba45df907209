"""Import report formatting functions.

Provides human-readable and machine-readable output for import operations:

- ``format_import_summary`` -- one-line post-commit summary.
- ``format_import_preview`` -- dry-run preview grouped by action.
- ``format_conflict_prompt`` -- header for one interactive conflict.
- ``result_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from collections import defaultdict

from .models import ImportAction, ImportResult, ImportResultItem

# ------------------------------------------------------------------
# Wording helpers
# ------------------------------------------------------------------


def pluralize(count: int, noun: str) -> str:
    """Return ``"1 item"`` / ``"2 items"``."""
    return f"{count} {noun if count == 1 else noun + 's'}"


def summarize_names(names: list[str], max_names: int = 3) -> str:
    """Join *names* as an English list, truncating long lists.

    More than ``max_names + 1`` names are cut to the first ``max_names``
    plus an ``"N more"`` entry, so a list is never shortened by just one.

    Examples:
        >>> summarize_names(["a", "b"])
        'a and b'
        >>> summarize_names(["a", "b", "c", "d", "e"])
        'a, b, c, and 2 more'
    """
    if not names:
        return "none"
    if len(names) > max_names + 1:
        names = names[:max_names] + [f"{len(names) - max_names} more"]

    if len(names) == 1:
        return names[0]
    if len(names) == 2:
        return f"{names[0]} and {names[1]}"
    return ", ".join(names[:-1]) + f", and {names[-1]}"


# ------------------------------------------------------------------
# Post-commit summary
# ------------------------------------------------------------------


def format_import_summary(result: ImportResult) -> str:
    """Summarise a committed import in one line.

    Messages are joined with ``". "``; a final period is added when there
    is more than one.  An import with nothing to report reads
    ``"Successfully imported Collection"``.

    Args:
        result: The committed import result.

    Returns:
        Formatted summary text.
    """
    messages: list[str] = []

    added = len(result.added)
    updated = len(result.updated)
    skipped = len(result.skipped)
    warnings = result.warnings

    if added:
        messages.append(f"Added {pluralize(added, 'item')}")
    if updated:
        messages.append(f"Updated {pluralize(updated, 'item')}")
    if skipped:
        messages.append(f"Skipped {pluralize(skipped, 'item')}")

    if warnings.missing_slug_count:
        messages.append(
            f"Skipped {pluralize(warnings.missing_slug_count, 'item')} "
            "because of missing slug field"
        )
    if warnings.double_slug_count:
        messages.append(
            f"Skipped {pluralize(warnings.double_slug_count, 'item')} "
            "because of duplicate slugs"
        )
    if warnings.skipped_value_count:
        field_names = warnings.skipped_field_names
        messages.append(
            f"Skipped {pluralize(warnings.skipped_value_count, 'value')} "
            f"for {pluralize(len(field_names), 'field')} "
            f"({summarize_names(field_names)})"
        )

    if not messages:
        return "Successfully imported Collection"
    summary = ". ".join(messages)
    return summary + "." if len(messages) > 1 else summary


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_import_preview(result: ImportResult, collection_name: str) -> str:
    """Format an uncommitted import result grouped by action.

    Each item is shown as ``[ACTION] slug``-style sections.

    Args:
        result: The reconciled (possibly partially decided) result.
        collection_name: Name of the target collection.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append("DRY RUN -- No changes will be made")
    lines.append(f"Collection: {collection_name}")
    lines.append("")

    groups: dict[ImportAction, list[ImportResultItem]] = defaultdict(list)
    for item in result.items:
        groups[item.action].append(item)

    labels = {
        ImportAction.ADD: "ADD",
        ImportAction.CONFLICT: "CONFLICT",
        ImportAction.ON_CONFLICT_UPDATE: "UPDATE",
        ImportAction.ON_CONFLICT_SKIP: "SKIP",
    }
    for action, label in labels.items():
        if action not in groups:
            continue
        lines.append(f"[{label}]")
        for item in groups[action]:
            lines.append(f"  {item.slug}")
        lines.append("")

    warnings = result.warnings
    if warnings.missing_slug_count:
        lines.append(f"Missing slug: {pluralize(warnings.missing_slug_count, 'record')}")
    if warnings.double_slug_count:
        lines.append(f"Duplicate slug: {pluralize(warnings.double_slug_count, 'record')}")
    if warnings.skipped_value_count:
        lines.append(
            f"Skipped values: {warnings.skipped_value_count} "
            f"({summarize_names(warnings.skipped_field_names)})"
        )

    if not result.items:
        lines.append("Nothing to import.")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Interactive conflicts
# ------------------------------------------------------------------


def format_conflict_prompt(
    item: ImportResultItem, position: int, total: int
) -> str:
    """Describe one conflict for an interactive decision.

    Args:
        item: The conflicting item.
        position: 1-based position among all conflicts.
        total: Number of conflicts in the result.

    Returns:
        Single-line description.
    """
    return (
        f"Conflict {position} of {total}: an item with slug "
        f"“{item.slug}” already exists"
    )


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def result_to_json(result: ImportResult) -> dict:
    """Convert an import result to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.  Field data is left out;
    only the slug, action and existing item id of each record are listed.

    Args:
        result: The import result.

    Returns:
        Dict with counts, per-item actions, and warnings.
    """
    items_list = []
    for item in result.items:
        entry: dict = {"slug": item.slug, "action": item.action.value}
        if item.id is not None:
            entry["id"] = item.id
        items_list.append(entry)

    warnings = result.warnings
    return {
        "counts": {
            "total": len(result.items),
            "added": len(result.added),
            "conflicts": len(result.conflicts),
            "updated": len(result.updated),
            "skipped": len(result.skipped),
        },
        "items": items_list,
        "warnings": {
            "missing_slug_count": warnings.missing_slug_count,
            "double_slug_count": warnings.double_slug_count,
            "skipped_value_count": warnings.skipped_value_count,
            "skipped_field_names": list(warnings.skipped_field_names),
        },
    }

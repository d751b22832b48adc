"""Prompt templates/builders.

Both stages instruct the model to reply with JSON only. Title-only relevance
prompts are batched; impact prompts carry one pre-truncated page body.
"""

from __future__ import annotations

from typing import Mapping, Sequence, Tuple

NO_INFORMATION = "no information"

RELEVANCE_SCHEMA_SNIPPET = (
    '{"results": [{"index": integer (the item number), '
    '"relevant": boolean, "category": string or null}]}'
)

IMPACT_SCHEMA_SNIPPET = (
    "{"
    '"what_changes": "what changes", '
    '"who_affected": "who is affected", '
    '"effective_date": "from when", '
    '"action_required": "required action", '
    '"summary": "about three lines"'
    "}"
)


def build_relevance_prompts(
    interests: Mapping[str, str],
    items: Sequence[Tuple[str, str]],
) -> Tuple[str, str]:
    """Return (system, user) prompts for batched title classification.

    ``interests`` maps a source key to its keyword string; ``items`` is the
    ordered list of (source display name, title) to judge, numbered from 1.
    """
    interest_lines = "\n".join(f"- {key}: {value}" for key, value in interests.items())
    system = (
        "Role: you assist in tracking regulatory and legislative changes.\n"
        "Task: read government press-release titles and decide whether each one\n"
        "falls within the user's areas of interest.\n\n"
        "## Areas of interest (per source)\n"
        f"{interest_lines}\n\n"
        "## Rules\n"
        "- Within an area of interest: relevant = true, category = the matching area\n"
        "- Outside every area: relevant = false\n"
        "- When unsure: relevant = true (missing an item is worse than a false alarm)\n\n"
        "## Output\n"
        f"JSON ONLY (no prose, no code fences). Schema: {RELEVANCE_SCHEMA_SNIPPET}\n"
    )
    lines = [f"{idx}. [{source_name}] {title}" for idx, (source_name, title) in enumerate(items, start=1)]
    user = (
        "Decide for each press-release title below whether it matches an area of interest.\n\n"
        + "\n".join(lines)
        + "\n\nReturn one result per numbered item, using the item number as index."
    )
    return system, user


def build_impact_prompts(source_name: str, title: str, content: str) -> Tuple[str, str]:
    """Return (system, user) prompts for the five-field impact analysis."""
    system = (
        "Role: you are an analyst specializing in regulatory and legislative change.\n"
        "Analyze the government press release and produce a structured impact analysis.\n\n"
        "Output the following five fields as JSON, one or two sentences each.\n"
        f'If a field cannot be determined from the text, use "{NO_INFORMATION}".\n'
        "Output JSON only.\n\n"
        f"{IMPACT_SCHEMA_SNIPPET}\n"
    )
    user = f"Source: {source_name}\nTitle: {title}\n\n--- Body ---\n{content}"
    return system, user

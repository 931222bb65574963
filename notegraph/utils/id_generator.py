"""
ID generation utilities for NoteGraph.

Provides consistent identifiers for graph resources:
- Entities: {prefix}:{Label}_{surface_form}
- Memo references: memo_N
- Pipeline runs: run_xxx
"""

import re
from uuid import uuid4

# Entity label -> local name prefix of the synthetic entity URI
ENTITY_URI_PREFIXES = {
    "PERSON": "Person",
    "PLACE": "Place",
    "ORGANIZATION": "Organization",
    "TIME": "Time",
    "CONCEPT": "Concept",
}


def generate_entity_id(text: str) -> str:
    """
    Generate a stable local name from an entity surface form.

    Whitespace runs become underscores and every other non-word
    character is dropped, so the same text always maps to the same ID.

    Args:
        text: Entity surface form

    Returns:
        Local name, e.g. "Marie_Curie" or "머신러닝"
    """
    return re.sub(r"[^\w]", "", re.sub(r"\s+", "_", text.strip()))


def generate_entity_uri(prefix: str, label: str, text: str) -> str:
    """
    Generate the prefixed URI of a recognised entity.

    Args:
        prefix: Namespace prefix (e.g. "ng")
        label: Entity label (PERSON, PLACE, ...)
        text: Entity surface form

    Returns:
        URI in format "{prefix}:{Label}_{entity_id}"
    """
    label_prefix = ENTITY_URI_PREFIXES.get(label, label.capitalize())
    return f"{prefix}:{label_prefix}_{generate_entity_id(text)}"


def generate_memo_id(index: int) -> str:
    """
    Generate a reference to a memo in a context bundle.

    Args:
        index: Zero-based position of the memo in the bundle

    Returns:
        ID in format "memo_N"
    """
    return f"memo_{index}"


def generate_run_id() -> str:
    """
    Generate unique pipeline run ID.

    Returns:
        ID in format "run_xxx" where xxx is 12 hex characters
    """
    return f"run_{uuid4().hex[:12]}"

"""
SPARQL text helpers: prefixes, string escaping, and term formatting.

Formatting rules are shared by the retriever (queries) and the
knowledge store writer (updates), so both build identical terms.
"""

import re

RDF = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
RDFS = "http://www.w3.org/2000/01/rdf-schema#"
DCTERMS = "http://purl.org/dc/terms/"
SKOS = "http://www.w3.org/2004/02/skos/core#"
BIBO = "http://purl.org/ontology/bibo/"
CORE_UNIT = "https://w3id.org/notegraph/ontology/core/k-unit#"
CORE_RESOURCE = "https://w3id.org/notegraph/ontology/core/k-resource#"

STANDARD_PREFIXES = {
    "rdf": RDF,
    "rdfs": RDFS,
    "dcterms": DCTERMS,
    "skos": SKOS,
}

NON_WORD = re.compile(r"[^\w]")

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "'": "\\'",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def build_prefixes(namespace_prefix: str, namespace_uri: str, extra: dict[str, str] | None = None) -> str:
    """
    Render a PREFIX block.

    Args:
        namespace_prefix: Project prefix for bare local names
        namespace_uri: Namespace bound to the project prefix
        extra: Additional prefix -> namespace bindings

    Returns:
        One "PREFIX p: <ns>" line per binding
    """
    bindings = {namespace_prefix: namespace_uri, **STANDARD_PREFIXES, **(extra or {})}
    return "\n".join(f"PREFIX {prefix}: <{uri}>" for prefix, uri in bindings.items())


def escape_string(value: str) -> str:
    """Escape a value for interpolation into a quoted SPARQL string."""
    return "".join(_ESCAPES.get(ch, ch) for ch in value)


def format_uri(value: str, prefix: str) -> str:
    """
    Format a subject or predicate.

    A value wrapped in angle brackets or containing a colon (prefixed
    form) passes through; anything else is a bare local name placed in
    the default namespace with non-word characters replaced by "_".
    """
    if value.startswith("<") and value.endswith(">"):
        return value
    if ":" in value:
        return value
    return f"{prefix}:{NON_WORD.sub('_', value)}"


def format_object(value: str) -> str:
    """
    Format an object term.

    Language-tagged literals, quoted literals, full URIs and prefixed
    names pass through; any other value becomes a quoted literal.
    """
    if "@" in value:
        return value
    if value.startswith('"') and value.endswith('"') and len(value) > 1:
        return value
    if value.startswith("<") and value.endswith(">"):
        return value
    if ":" in value:
        return value
    escaped = value.replace('"', '\\"')
    return f'"{escaped}"'


def format_triple_pattern(subject: str, predicate: str, obj: str, prefix: str) -> str:
    """Render one "s p o ." statement."""
    return f"{format_uri(subject, prefix)} {format_uri(predicate, prefix)} {format_object(obj)} ."

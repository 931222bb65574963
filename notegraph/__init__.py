"""NoteGraph: ground model answers in personal notes and feed new facts back into an RDF knowledge graph."""

__version__ = "0.1.0"

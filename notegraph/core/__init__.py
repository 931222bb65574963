"""Core backends: graph store access, LLM providers and factories."""

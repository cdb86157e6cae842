"""Waffles - prompt, context and generation pipeline for code repositories.

Waffles detects a repository's language, selects the files worth sending,
and chains three command-line tools: a prompt retriever, a context
extractor and an LLM front-end.
"""

__version__ = "0.1.0"
__author__ = "Waffles Contributors"

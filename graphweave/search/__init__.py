"""Reference search backends."""

from graphweave.search.lexical import LexicalSearch, metadata_matches, tokenize

__all__ = ["LexicalSearch", "metadata_matches", "tokenize"]

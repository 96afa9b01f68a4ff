"""Learned success patterns: privacy-gated extraction, storage, ranking and prompt rendering."""

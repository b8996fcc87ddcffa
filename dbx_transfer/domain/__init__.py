"""Domain types for cached Dropbox tokens."""

"""Adapters for the filesystem, the environment and the Dropbox HTTP API."""

"""Shared helpers: errors, logging, paths, NIfTI I/O and caching."""

"""Entrypoints (outer surfaces) for CHRONICLE, currently the command line."""

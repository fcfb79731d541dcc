"""Shared pytest fixtures (no tests here)."""

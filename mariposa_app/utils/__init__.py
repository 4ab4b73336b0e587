"""Shared helpers for the Mariposa dashboard."""

"""Bounded, file-mediated execution of the configured command."""

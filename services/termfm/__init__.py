"""Shared library for the terminal-fm player service and radio client."""

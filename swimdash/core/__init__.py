"""
Core business logic for swim session tracking.

This module is framework-agnostic - it doesn't import FastAPI or any
particular storage backend. The store receives its storage through
the KeyValueStorage protocol, so tests run it against memory.
"""

"""
Core activity logic.

This module is framework-agnostic - it doesn't import FastAPI or the
Google Cloud SDK. The storage client is injected, so the read/write/delete
rules can be tested in isolation.
"""

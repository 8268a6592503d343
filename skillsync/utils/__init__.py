"""Filesystem helpers: document store and skill enumeration."""

"""Hobby operating-system components working on in-memory data."""

__version__ = "0.1.0"
"""Burrow - semantic file indexing daemon for a desktop launcher."""

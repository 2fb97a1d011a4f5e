"""Burrow CLI."""

"""Cached GitHub actor profiles."""

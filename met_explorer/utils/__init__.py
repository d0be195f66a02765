"""Utility helpers for Met Explorer."""

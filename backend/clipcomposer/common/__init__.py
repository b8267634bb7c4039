"""Shared base models and errors."""

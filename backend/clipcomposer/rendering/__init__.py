"""Remotion render engine boundary."""

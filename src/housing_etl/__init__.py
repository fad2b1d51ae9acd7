"""Arrival-sheet accommodation resolution and allocation."""

"""Concrete collaborators for the monitoring core."""

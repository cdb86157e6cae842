"""Sample project."""

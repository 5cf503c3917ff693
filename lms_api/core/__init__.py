"""Application infrastructure."""

"""LMS assessment engine API."""

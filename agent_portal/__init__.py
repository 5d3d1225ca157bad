"""Agent portal authentication service."""

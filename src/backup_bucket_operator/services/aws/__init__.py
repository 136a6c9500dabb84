"""AWS backend implementation."""

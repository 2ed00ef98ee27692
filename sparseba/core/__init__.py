"""Core bundle adjustment modules."""

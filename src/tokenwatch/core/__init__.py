"""Core primitives shared across tokenwatch."""

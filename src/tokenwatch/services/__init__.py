"""Reference adapters for the detection engine's external collaborators."""

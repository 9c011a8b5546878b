"""Core configuration, arithmetic and error primitives."""

"""Core data types shared across components."""

"""Core of tickerdeck."""

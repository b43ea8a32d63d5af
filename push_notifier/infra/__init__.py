"""Infrastructure adapters (logging, Signal K host integration)."""

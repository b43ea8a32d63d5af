"""Push notifier: fan Signal K notifications out over email and web push."""

__version__ = "1.0.0"

"""cu - ClickUp CLI for developers and AI agents."""

__version__ = "0.4.0"

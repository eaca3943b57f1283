"""Discord stock research bot: quotes, notes, valuations and charts."""

__version__ = "1.0.0"

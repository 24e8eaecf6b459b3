"""One-way incremental sync of an Omnivore library into Markdown notes."""

__version__ = "0.4.0"

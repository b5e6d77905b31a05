"""CPM script sync -- keeps macro and script files on disk in step with CPM database rows."""

__version__ = "0.3.0"

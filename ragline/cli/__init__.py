"""Command-line tools (``python -m ragline.cli``)."""

"""Allow ``python -m bluesky_widget``."""

from bluesky_widget.app import run

run()

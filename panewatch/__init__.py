"""panewatch: run shell commands on an interval in splittable terminal panes."""

__version__ = "0.1.0"

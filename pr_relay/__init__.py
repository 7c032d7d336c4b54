"""Relay GitHub pull request activity into Discord or Slack."""

__version__ = "0.1.0"

"""Slack chat backend."""

from pr_relay.services.slack.client import SlackClient

__all__ = ["SlackClient"]

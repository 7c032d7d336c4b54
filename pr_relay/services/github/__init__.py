"""GitHub webhook ingress."""

from pr_relay.services.github.parser import parse_webhook_event

__all__ = ["parse_webhook_event"]

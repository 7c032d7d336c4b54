"""Notification rendering."""

from pr_relay.services.notifications.service import NotificationBuilder, thread_name
from pr_relay.services.notifications.templates import TemplateService
from pr_relay.services.notifications.user_mapping import UserMapping

__all__ = ["NotificationBuilder", "TemplateService", "UserMapping", "thread_name"]

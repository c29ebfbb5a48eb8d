"""
Chat application configuration.

This app provides the messaging core with:
- Direct (1:1) and group conversations
- Admin-managed group membership with admin handoff on leave
- Soft deleted messages and per-user read receipts
- Realtime gateway for presence, typing and pushed events
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"

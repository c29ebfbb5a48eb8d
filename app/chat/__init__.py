"""
Chat app for alumni messaging.

This app handles:
- Conversations (direct and group)
- Message sending, soft deletion and read receipts
- WebSocket realtime gateway (presence, typing, pushed events)

Related apps:
    - authentication: User model for participants and presence
    - core: BaseService, ServiceResult, application exceptions

WebSocket Support:
    Uses Django Channels for real-time communication.
    See consumers.py for the socket handler.
    See routing.py for WebSocket URL patterns.

Usage:
    from chat.services import ConversationService, MessageService

    result = ConversationService.create_direct(user, other_user.id)
    conversation, created = result.data

    MessageService.send_message(conversation.id, user, "Hello!")
"""

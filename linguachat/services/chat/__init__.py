"""Chat services: message store, profiles, directory, translation cache.

Use explicit imports:
    from linguachat.services.chat.sender import MessageService
    from linguachat.services.chat.conversations import ConversationService
"""

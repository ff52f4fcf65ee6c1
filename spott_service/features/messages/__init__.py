from spott_service.features.messages.slice import ConversationSlice, ConversationState

__all__ = ["ConversationSlice", "ConversationState"]

from app.stores.base import ConversationStore, MatchPairConflict, ProfileStore

__all__ = ["ConversationStore", "MatchPairConflict", "ProfileStore"]

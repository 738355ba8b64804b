from mockinterview.novelty.store import DEFAULT_CONVERSATION_ID, NoveltyStore, normalize, scoped_conversation_id

__all__ = ["DEFAULT_CONVERSATION_ID", "NoveltyStore", "normalize", "scoped_conversation_id"]

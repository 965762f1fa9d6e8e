"""Client that drives chat exchanges against the relay and folds streams into a transcript."""

from chatrelay.client.chat_client import ChatClient
from chatrelay.client.reducer import ChatSession, ExchangeState, IncrementalMessageReducer, ScrollRegion, Viewport

__all__ = ["ChatClient", "ChatSession", "ExchangeState", "IncrementalMessageReducer", "ScrollRegion", "Viewport"]

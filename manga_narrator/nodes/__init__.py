"""
LangGraph nodes for one narration cycle
"""
from .analyze import analyze_node
from .narrate import narrate_node
from .speak import speak_node

__all__ = ["analyze_node", "narrate_node", "speak_node"]

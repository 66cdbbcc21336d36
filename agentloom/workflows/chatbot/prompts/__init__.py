from .chatbot import CHATBOT_MEMORY_GUIDE, build_chatbot_system_prompt

__all__ = ["CHATBOT_MEMORY_GUIDE", "build_chatbot_system_prompt"]

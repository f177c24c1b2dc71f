"""ViewModels package for the chat UI."""

from ui.viewmodels.chat_viewmodel import ChatViewModel

__all__ = [
    "ChatViewModel",
]

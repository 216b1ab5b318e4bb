from marketing_assistant.routers import campaigns, chat, users, ws

__all__ = ["campaigns", "chat", "users", "ws"]

from slack_approval.interfaces.base import ActionDispatcher, ActionTransport, Messenger

__all__ = ["ActionDispatcher", "ActionTransport", "Messenger"]

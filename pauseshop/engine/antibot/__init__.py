"""Anti-bot strategy chain applied to every outgoing search request."""

from .chain import AntiBotChain, AntiBotContext, RequestDirective, Strategy
from .strategies import build_chain

__all__ = ["AntiBotChain", "AntiBotContext", "RequestDirective", "Strategy", "build_chain"]

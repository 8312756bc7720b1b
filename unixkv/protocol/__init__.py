"""Protocol module for unixkv."""

from .commands import Command, Response, ResponseStatus
from .dispatcher import CommandDispatcher
from .lexer import Lexer, Token, TokenType
from .parser import ProtocolParser

__all__ = [
    "Command",
    "CommandDispatcher",
    "Lexer",
    "Response",
    "ResponseStatus",
    "ProtocolParser",
    "Token",
    "TokenType",
]

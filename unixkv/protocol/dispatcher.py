"""
Command Dispatcher Module

Routes parsed commands to their handlers and runs them against the store.

Dispatch table (keyed by upper-case command name):
    GET -> _handle_get
    SET -> _handle_set
    DEL -> _handle_del
    anything else -> "ERR Unknown command: <name>"
"""

import logging
from typing import Callable, Dict, Optional

from ..config.settings import settings
from ..storage.store import KVStore
from .commands import Command, Response
from .lexer import Token, TokenType
from .parser import ProtocolParser

logger = logging.getLogger(__name__)

Handler = Callable[[Command], Response]

KEY_TOKENS = (TokenType.IDENTIFIER, TokenType.STRING)


class CommandDispatcher:
    """
    Executes commands against a shared KVStore.

    Every per-command problem becomes an ERR response; handlers never
    raise for bad input.

    Usage:
        dispatcher = CommandDispatcher(store)
        response = dispatcher.dispatch(parser.parse_request("GET name"))

    Attributes:
        store: The KVStore shared by all connections
        max_key_length: Longest key SET accepts, in UTF-8 bytes
    """

    def __init__(self, store: KVStore, max_key_length: int = None):
        self.store = store
        self.max_key_length = (
            max_key_length if max_key_length is not None else settings.MAX_KEY_LENGTH
        )
        self._handlers: Dict[str, Handler] = {
            "GET": self._handle_get,
            "SET": self._handle_set,
            "DEL": self._handle_del,
        }

    def dispatch(self, command: Command) -> Response:
        """
        Execute one parsed command.

        Args:
            command: The Command produced by ProtocolParser

        Returns:
            Response for the client
        """
        name = command.name
        if name is None:
            return Response.expected_command(command.name_token)

        handler = self._handlers.get(name.upper())
        if handler is None:
            return Response.unknown_command(name)
        return handler(command)

    def execute(self, line: str, parser: ProtocolParser) -> str:
        """Parse, dispatch and format one request line."""
        response = self.dispatch(parser.parse_request(line))
        return parser.format_response(response)

    @staticmethod
    def _key_from(token: Token) -> Optional[str]:
        if token.type in KEY_TOKENS:
            return token.value
        return None

    def _handle_get(self, command: Command) -> Response:
        token = command.arg(0)
        key = self._key_from(token)
        if key is None:
            return Response.missing_key(token)

        value = self.store.lookup(key)
        if value is None:
            return Response.null()
        return Response.value_response(value)

    def _handle_set(self, command: Command) -> Response:
        token = command.arg(0)
        key = self._key_from(token)
        if key is None:
            return Response.missing_key(token)

        if len(key.encode("utf-8")) > self.max_key_length:
            return Response.key_too_long()

        value_token = command.arg(1)
        if value_token.type in (TokenType.IDENTIFIER, TokenType.STRING):
            value = value_token.value
        elif value_token.type == TokenType.INT:
            value = str(value_token.value)
        elif value_token.type == TokenType.FLOAT:
            value = "%g" % value_token.value
        elif value_token.type == TokenType.EOF:
            return Response.missing_value()
        else:
            return Response.malformed_value(value_token)

        created = self.store.insert(key, value)
        logger.debug(f"SET {key!r} ({'created' if created else 'replaced'})")
        return Response.ok()

    def _handle_del(self, command: Command) -> Response:
        token = command.arg(0)
        key = self._key_from(token)
        if key is None:
            return Response.missing_key(token)

        # Reply is OK whether or not the key existed
        self.store.remove(key)
        return Response.ok()

"""
Protocol Parser Module

This module handles tokenizing request lines into Command objects and
formatting Response objects into reply lines.

Protocol Format:
    Request:  <COMMAND> [ARGS...]\\n   (a trailing \\r is tolerated)
    Response: OK | NULL | <value> | ERR <message>, always ending in \\r\\n
"""

import threading

from .commands import EOF_TOKEN, Command, Response, ResponseStatus
from .lexer import Lexer, TokenType

TERMINATOR = "\r\n"


class ProtocolParser:
    """
    Parser for the unixkv text protocol.

    Commands:
        GET <key>           -> <value> | NULL
        SET <key> <value>   -> OK | ERR <reason>
        DEL <key>           -> OK

    Keys are identifiers or quoted strings. Values may also be integers
    or floats.

    The parser owns a Lexer, which carries a cursor, so parse_request()
    holds a lock for the whole line. The server creates one parser per
    connection; sharing one between connections is still safe, just
    serialized.
    """

    def __init__(self):
        """Initialize the parser with its own lexer."""
        self._lexer = Lexer()
        self._lock = threading.Lock()

    def parse_request(self, data: str) -> Command:
        """
        Tokenize one request line into a Command.

        Args:
            data: Raw request line (may include a trailing line terminator)

        Returns:
            Command whose name_token is the first token of the line and
            whose args are the remaining tokens up to EOF. If the line
            contains a malformed token, args end with that ERROR token.

        Examples:
            >>> parser = ProtocolParser()
            >>> cmd = parser.parse_request('SET name "Alice"')
            >>> cmd.name
            'SET'
            >>> cmd.args[1].value
            'Alice'
        """
        with self._lock:
            self._lexer.input_text(data)
            tokens = list(self._lexer.tokens())

        if tokens[-1].type == TokenType.EOF:
            tokens.pop()

        if not tokens:
            return Command(name_token=EOF_TOKEN, raw=data)

        return Command(name_token=tokens[0], args=tokens[1:], raw=data)

    def format_response(self, response: Response) -> str:
        """
        Format a Response object into a protocol string.

        Args:
            response: Response object to format

        Returns:
            Formatted response string WITH trailing CRLF.

        Examples:
            >>> parser = ProtocolParser()
            >>> parser.format_response(Response.ok())
            'OK\\r\\n'
            >>> parser.format_response(Response.value_response("hello"))
            'hello\\r\\n'
            >>> parser.format_response(Response.error("Key To Long"))
            'ERR Key To Long\\r\\n'
        """
        if response.status == ResponseStatus.VALUE:
            body = response.value if response.value is not None else ""
        elif response.status == ResponseStatus.ERROR:
            body = f"{response.status.value} {response.message}"
        else:
            body = response.status.value

        return f"{body}{TERMINATOR}"

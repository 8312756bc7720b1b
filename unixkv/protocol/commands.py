"""
Protocol Command and Response Definitions

This module defines the data structures for protocol commands and responses.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .lexer import Token, TokenType

EOF_TOKEN = Token(TokenType.EOF)


class ResponseStatus(Enum):
    """Enumeration of response statuses."""
    OK = "OK"
    NULL = "NULL"
    VALUE = "VALUE"
    ERROR = "ERR"


@dataclass
class Command:
    """
    Represents one tokenized request line.

    Attributes:
        name_token: First token of the line; an IDENTIFIER for a well-formed command
        args: Remaining tokens, without the trailing EOF
        raw: The original line
    """
    name_token: Token
    args: List[Token] = field(default_factory=list)
    raw: str = ""

    @property
    def name(self) -> Optional[str]:
        """Command name as typed, or None if the line does not start with one."""
        if self.name_token.type != TokenType.IDENTIFIER:
            return None
        return self.name_token.value

    def arg(self, index: int) -> Token:
        """Return argument token at index, or an EOF token past the end."""
        if index < len(self.args):
            return self.args[index]
        return EOF_TOKEN


@dataclass
class Response:
    """
    Represents a protocol response.

    Attributes:
        status: OK, NULL, VALUE or ERROR
        message: Error description (ERROR only)
        value: The value returned (VALUE only)
    """
    status: ResponseStatus
    message: str = ""
    value: Optional[str] = None

    @classmethod
    def ok(cls) -> "Response":
        """Create a successful response."""
        return cls(status=ResponseStatus.OK)

    @classmethod
    def null(cls) -> "Response":
        """Create the response for a missing key."""
        return cls(status=ResponseStatus.NULL)

    @classmethod
    def value_response(cls, value: str) -> "Response":
        """Create a GET response with a value."""
        return cls(status=ResponseStatus.VALUE, value=value)

    @classmethod
    def error(cls, message: str) -> "Response":
        """Create an error response."""
        return cls(status=ResponseStatus.ERROR, message=message)

    @classmethod
    def missing_key(cls, token: Token) -> "Response":
        return cls.error(f"Missing KEY (token={token.code})")

    @classmethod
    def key_too_long(cls) -> "Response":
        # Wording kept as-is; existing clients match on it
        return cls.error("Key To Long")

    @classmethod
    def missing_value(cls) -> "Response":
        return cls.error("Missing Value Argument")

    @classmethod
    def malformed_value(cls, token: Token) -> "Response":
        return cls.error(f"Malformed Value Argument (token={token.code})")

    @classmethod
    def expected_command(cls, token: Token) -> "Response":
        return cls.error(f"Expected Command Identifier (got token={token.code})")

    @classmethod
    def unknown_command(cls, name: str) -> "Response":
        return cls.error(f"Unknown command: {name}")

    @property
    def is_error(self) -> bool:
        return self.status == ResponseStatus.ERROR

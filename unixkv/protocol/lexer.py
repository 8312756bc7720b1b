"""
Command Line Lexer

Splits one request line into tokens. Recognized classes:

    IDENTIFIER  [A-Za-z_][A-Za-z0-9_]*
    STRING      'single quoted' (literal) or "double quoted" (escapes)
    INT         123, 0x1F, 017 (octal), 0b101
    FLOAT       1.5, .5, 2e10, 3.25e-2
    CHAR        any other single non-blank character, including "-"

Spaces, tabs, CR and LF separate tokens. There is no comment syntax.

Token type codes are part of the wire protocol: error replies such as
"ERR Missing KEY (token=0)" report them, so they must not change.
"""

import string
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, Union

SKIP_CHARS = " \t\r\n"
IDENTIFIER_FIRST = string.ascii_letters + "_"
IDENTIFIER_NTH = string.ascii_letters + string.digits + "_"
OCTAL_DIGITS = "01234567"
BINARY_DIGITS = "01"

_STRING_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "\\": "\\",
    '"': '"',
}


class TokenType(IntEnum):
    """Token classes with their stable protocol codes."""
    EOF = 0
    ERROR = 257
    CHAR = 258
    INT = 261
    FLOAT = 263
    STRING = 264
    IDENTIFIER = 266


@dataclass
class Token:
    """
    A single lexical token.

    Attributes:
        type: Token class
        value: Parsed value (str for IDENTIFIER/STRING/CHAR/ERROR,
               int for INT, float for FLOAT, None for EOF)
        text: The source text the token was read from
    """
    type: TokenType
    value: Union[str, int, float, None] = None
    text: str = ""

    @property
    def code(self) -> int:
        return int(self.type)


class Lexer:
    """
    Stateful tokenizer over one line of input.

    The lexer keeps a cursor into the current text, so a single instance
    must not be fed from two places at once.

    Usage:
        lexer = Lexer()
        lexer.input_text('SET name "Alice"')
        lexer.next_token()  # Token(IDENTIFIER, 'SET')
    """

    def __init__(self):
        self._text = ""
        self._pos = 0

    def input_text(self, text: str) -> None:
        """Reset the lexer to scan text from the beginning."""
        self._text = text
        self._pos = 0

    def tokens(self) -> Iterator[Token]:
        """
        Yield the remaining tokens, ending with EOF.

        Scanning stops after the first ERROR token.
        """
        while True:
            token = self.next_token()
            yield token
            if token.type in (TokenType.EOF, TokenType.ERROR):
                return

    def next_token(self) -> Token:
        """Scan and return the next token."""
        text = self._text
        while self._pos < len(text) and text[self._pos] in SKIP_CHARS:
            self._pos += 1

        if self._pos >= len(text):
            return Token(TokenType.EOF)

        start = self._pos
        ch = text[start]

        if ch in IDENTIFIER_FIRST:
            return self._scan_identifier(start)
        if ch in string.digits or (ch == "." and self._peek_digit(start + 1)):
            return self._scan_number(start)
        if ch == "'":
            return self._scan_single_quoted(start)
        if ch == '"':
            return self._scan_double_quoted(start)

        self._pos += 1
        return Token(TokenType.CHAR, ch, ch)

    def _peek_digit(self, pos: int) -> bool:
        return pos < len(self._text) and self._text[pos] in string.digits

    def _take_while(self, chars: str) -> str:
        start = self._pos
        while self._pos < len(self._text) and self._text[self._pos] in chars:
            self._pos += 1
        return self._text[start:self._pos]

    def _scan_identifier(self, start: int) -> Token:
        self._take_while(IDENTIFIER_NTH)
        name = self._text[start:self._pos]
        return Token(TokenType.IDENTIFIER, name, name)

    def _scan_number(self, start: int) -> Token:
        text = self._text
        prefix = text[start:start + 2].lower()
        if prefix in ("0x", "0b"):
            self._pos += 2
            digits = self._take_while(string.hexdigits if prefix == "0x" else BINARY_DIGITS)
            source = text[start:self._pos]
            if not digits:
                return Token(TokenType.ERROR, f"digits expected after '{prefix}'", source)
            number = int(digits, 16 if prefix == "0x" else 2)
            return Token(TokenType.INT, number, source)

        whole = self._take_while(string.digits)
        is_float = False

        if self._pos < len(text) and text[self._pos] == ".":
            is_float = True
            self._pos += 1
            self._take_while(string.digits)

        if self._pos < len(text) and text[self._pos] in "eE":
            mark = self._pos
            self._pos += 1
            if self._pos < len(text) and text[self._pos] in "+-":
                self._pos += 1
            if self._take_while(string.digits):
                is_float = True
            else:
                # Not an exponent; leave the 'e' for the next token
                self._pos = mark

        source = text[start:self._pos]
        if is_float:
            return Token(TokenType.FLOAT, float(source), source)

        if len(whole) > 1 and whole.startswith("0"):
            if any(c not in OCTAL_DIGITS for c in whole):
                return Token(TokenType.ERROR, f"invalid octal number '{source}'", source)
            number = int(whole, 8)
        else:
            number = int(whole)
        return Token(TokenType.INT, number, source)

    def _scan_single_quoted(self, start: int) -> Token:
        end = self._text.find("'", start + 1)
        if end < 0:
            self._pos = len(self._text)
            return Token(TokenType.ERROR, "unterminated string", self._text[start:])
        self._pos = end + 1
        return Token(TokenType.STRING, self._text[start + 1:end], self._text[start:self._pos])

    def _scan_double_quoted(self, start: int) -> Token:
        text = self._text
        out = []
        self._pos = start + 1

        while self._pos < len(text):
            ch = text[self._pos]
            if ch == '"':
                self._pos += 1
                return Token(TokenType.STRING, "".join(out), text[start:self._pos])

            if ch != "\\":
                out.append(ch)
                self._pos += 1
                continue

            self._pos += 1
            if self._pos >= len(text):
                break
            code = text[self._pos]
            if code in _STRING_ESCAPES:
                out.append(_STRING_ESCAPES[code])
                self._pos += 1
            elif code in OCTAL_DIGITS:
                octal = ""
                for c in text[self._pos:self._pos + 3]:
                    if c not in OCTAL_DIGITS:
                        break
                    octal += c
                out.append(chr(int(octal, 8)))
                self._pos += len(octal)
            else:
                # Unknown escapes are kept as written
                out.append("\\" + code)
                self._pos += 1

        self._pos = len(text)
        return Token(TokenType.ERROR, "unterminated string", text[start:])

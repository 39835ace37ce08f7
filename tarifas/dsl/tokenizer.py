from .errors import FormulaSyntaxError
from .tokens import Token, TokenType

SINGLE_CHAR_TOKENS = {
    '+': TokenType.PLUS,
    '-': TokenType.MINUS,
    '*': TokenType.MUL,
    '/': TokenType.DIV,
    '%': TokenType.MOD,
    '^': TokenType.POW,
    '>': TokenType.GT,
    '<': TokenType.LT,
    '(': TokenType.LPAREN,
    ')': TokenType.RPAREN,
    ',': TokenType.COMMA,
    ';': TokenType.SEMICOLON,
    '?': TokenType.QUESTION,
    ':': TokenType.COLON,
}

TWO_CHAR_TOKENS = {
    '>=': TokenType.GTE,
    '<=': TokenType.LTE,
    '==': TokenType.EQ,
    '!=': TokenType.NE,
}


class Tokenizer:
    def __init__(self, text):
        self.text = text
        self.pos = 0
        self.current = text[0] if text else None

    def advance(self):
        self.pos += 1
        self.current = self.text[self.pos] if self.pos < len(self.text) else None

    def peek(self, offset=1):
        index = self.pos + offset
        return self.text[index] if index < len(self.text) else None

    def skip_spaces(self):
        while self.current and self.current.isspace():
            self.advance()

    def number(self):
        start = self.pos
        while self.current and (self.current.isdigit() or self.current == '.'):
            self.advance()

        # Exponent only when digits follow, so "2e" stays a number and an identifier
        if self.current in ('e', 'E'):
            nxt = self.peek()
            if nxt and (nxt.isdigit() or (nxt in '+-' and (self.peek(2) or '').isdigit())):
                self.advance()
                if self.current in '+-':
                    self.advance()
                while self.current and self.current.isdigit():
                    self.advance()

        literal = self.text[start:self.pos]
        try:
            return Token(TokenType.NUMBER, float(literal), start)
        except ValueError:
            raise FormulaSyntaxError(f"Invalid number literal '{literal}' at position {start}")

    def string(self):
        start = self.pos
        quote = self.current
        self.advance()
        chars = []
        while self.current is not None and self.current != quote:
            if self.current == '\\' and self.peek() is not None:
                self.advance()
            chars.append(self.current)
            self.advance()
        if self.current is None:
            raise FormulaSyntaxError(f"Unterminated string starting at position {start}")
        self.advance()
        return Token(TokenType.STRING, ''.join(chars), start)

    def identifier(self):
        start = self.pos
        while self.current and (self.current.isalnum() or self.current == '_'):
            self.advance()
        return Token(TokenType.IDENTIFIER, self.text[start:self.pos], start)

    def generate_tokens(self):
        tokens = []
        while self.current:
            if self.current.isspace():
                self.skip_spaces()
                continue

            if self.current.isdigit() or (self.current == '.' and (self.peek() or '').isdigit()):
                tokens.append(self.number())
                continue

            if self.current.isalpha() or self.current == '_':
                tokens.append(self.identifier())
                continue

            if self.current == '"':
                tokens.append(self.string())
                continue

            # Two-char operators first
            two_char = self.text[self.pos:self.pos + 2]
            if two_char in TWO_CHAR_TOKENS:
                tokens.append(Token(TWO_CHAR_TOKENS[two_char], two_char, self.pos))
                self.advance(); self.advance()
                continue

            if self.current in SINGLE_CHAR_TOKENS:
                tokens.append(Token(SINGLE_CHAR_TOKENS[self.current], self.current, self.pos))
                self.advance()
                continue

            raise FormulaSyntaxError(f"Unexpected character '{self.current}' at position {self.pos}")

        tokens.append(Token(TokenType.EOF, None, self.pos))
        return tokens

from .ast_nodes import (
    BinaryOpNode, ConditionalNode, FunctionCallNode, NumberNode, StringNode, UnaryOpNode, VarNode,
)
from .errors import FormulaSyntaxError
from .tokens import TokenType

COMPARISON_OPS = (
    TokenType.GT, TokenType.LT,
    TokenType.GTE, TokenType.LTE,
    TokenType.EQ, TokenType.NE,
)

ARGUMENT_SEPARATORS = (TokenType.COMMA, TokenType.SEMICOLON)


class Parser:
    """
    Recursive-descent parser, lowest precedence first:

        conditional := comparison ('?' conditional ':' conditional)?
        comparison  := additive (COMPARISON_OP additive)*
        additive    := term (('+' | '-') term)*
        term        := unary (('*' | '/' | '%') unary)*
        unary       := ('+' | '-') unary | power
        power       := primary ('^' unary)?
    """

    def __init__(self, tokens):
        self.tokens = tokens
        self.index = 0
        self.current = tokens[0]

    def eat(self, type_):
        if self.current.type == type_:
            self.index += 1
            self.current = self.tokens[self.index]
        else:
            raise FormulaSyntaxError(f"Unexpected token {self.current}, expected {type_}")

    def parse(self):
        if self.current.type == TokenType.EOF:
            raise FormulaSyntaxError("Empty expression")
        result = self.conditional()
        if self.current.type != TokenType.EOF:
            raise FormulaSyntaxError(f"Extra tokens after expression: {self.current}")
        return result

    def conditional(self):
        node = self.comparison()

        if self.current.type == TokenType.QUESTION:
            self.eat(TokenType.QUESTION)
            when_true = self.conditional()
            self.eat(TokenType.COLON)
            when_false = self.conditional()
            return ConditionalNode(node, when_true, when_false)

        return node

    def comparison(self):
        node = self.additive()

        while self.current.type in COMPARISON_OPS:
            op = self.current
            self.eat(op.type)
            node = BinaryOpNode(node, op, self.additive())

        return node

    def additive(self):
        node = self.term()

        while self.current.type in (TokenType.PLUS, TokenType.MINUS):
            op = self.current
            self.eat(op.type)
            node = BinaryOpNode(node, op, self.term())

        return node

    def term(self):
        node = self.unary()

        while self.current.type in (TokenType.MUL, TokenType.DIV, TokenType.MOD):
            op = self.current
            self.eat(op.type)
            node = BinaryOpNode(node, op, self.unary())

        return node

    def unary(self):
        if self.current.type in (TokenType.PLUS, TokenType.MINUS):
            op = self.current
            self.eat(op.type)
            return UnaryOpNode(op, self.unary())

        return self.power()

    def power(self):
        node = self.primary()

        if self.current.type == TokenType.POW:
            op = self.current
            self.eat(TokenType.POW)
            # Right-associative: 2 ^ 3 ^ 2 == 2 ^ 9
            return BinaryOpNode(node, op, self.unary())

        return node

    def primary(self):
        token = self.current

        if token.type == TokenType.NUMBER:
            self.eat(TokenType.NUMBER)
            return NumberNode(token.value)

        if token.type == TokenType.STRING:
            self.eat(TokenType.STRING)
            return StringNode(token.value)

        if token.type == TokenType.IDENTIFIER:
            name = token.value
            self.eat(TokenType.IDENTIFIER)

            # Function call?
            if self.current.type == TokenType.LPAREN:
                self.eat(TokenType.LPAREN)
                args = []
                if self.current.type != TokenType.RPAREN:
                    args.append(self.conditional())
                    while self.current.type in ARGUMENT_SEPARATORS:
                        self.eat(self.current.type)
                        args.append(self.conditional())
                self.eat(TokenType.RPAREN)
                return FunctionCallNode(name, args)

            return VarNode(name)

        if token.type == TokenType.LPAREN:
            self.eat(TokenType.LPAREN)
            expr = self.conditional()
            self.eat(TokenType.RPAREN)
            return expr

        raise FormulaSyntaxError(f"Unexpected token: {token}")

class NumberNode:
    def __init__(self, value): self.value = value

class StringNode:
    def __init__(self, value): self.value = value

class VarNode:
    def __init__(self, name): self.name = name

class UnaryOpNode:
    def __init__(self, op, operand):
        self.op = op
        self.operand = operand

class BinaryOpNode:
    def __init__(self, left, op, right):
        self.left = left
        self.op = op
        self.right = right

class ConditionalNode:
    def __init__(self, condition, when_true, when_false):
        self.condition = condition
        self.when_true = when_true
        self.when_false = when_false

class FunctionCallNode:
    def __init__(self, name, args):
        self.name = name
        self.args = args

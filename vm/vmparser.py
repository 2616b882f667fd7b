import typing

import regex

from vmcommand import (SourcePos, UnknownSourcePos, ParseError, Command, Segment, Instruction,
                       ARITHMETIC_COMMANDS, PUSH_POP_COMMANDS, BRANCH_COMMANDS, FUNCTION_COMMANDS,
                       TEMP_SIZE, POINTER_SIZE)

line_regex = regex.compile(r"^[^\S\n]*(?<op>\S+)(?:[^\S\n]+(?<arg>\S+))*[^\S\n]*$")
number_regex = regex.compile(r"^[0-9]+$")
# '$' is reserved for the scoped names the writer generates
name_regex = regex.compile(r"^[A-Za-z_.:][A-Za-z0-9_.:]*$")


def _require(args: list[str], pos: int, what: str, line: str, source_pos: SourcePos) -> str:
    if len(args) <= pos:
        raise ParseError(f"Missing {what} in '{line}'", source_pos)
    return args[pos]


def _number(args: list[str], pos: int, what: str, line: str, source_pos: SourcePos) -> int:
    token = _require(args, pos, what, line, source_pos)
    if not number_regex.match(token):
        raise ParseError(f"Expected non-negative {what}, got '{token}' in '{line}'", source_pos)
    return int(token)


def _name(args: list[str], pos: int, what: str, line: str, source_pos: SourcePos) -> str:
    token = _require(args, pos, what, line, source_pos)
    if not name_regex.match(token):
        raise ParseError(f"Invalid {what} '{token}' in '{line}'", source_pos)
    return token


def _push_pop(line: str, op: str, args: list[str], source_pos: SourcePos) -> Instruction:
    name = _require(args, 0, "segment", line, source_pos)
    segment = Segment.lookup(name)
    if segment is None:
        raise ParseError(f"Unknown segment '{name}' in '{line}'", source_pos)
    index = _number(args, 1, "index", line, source_pos)

    if op == 'pop' and segment.name == 'constant':
        raise ParseError(f"Cannot pop into constant segment: '{line}'", source_pos)
    if segment.name == 'pointer' and index >= POINTER_SIZE:
        raise ParseError(f"Pointer index {index} out of range 0..{POINTER_SIZE - 1}", source_pos)
    if segment.name == 'temp' and index >= TEMP_SIZE:
        raise ParseError(f"Temp index {index} out of range 0..{TEMP_SIZE - 1}", source_pos)

    return Instruction(line, Command.PushPop, op, segment=segment, index=index, source_pos=source_pos)


def classify(line: str, source_pos: SourcePos = UnknownSourcePos) -> Instruction:
    """Classify a single comment-free, trimmed source line."""
    m = line_regex.match(line)
    if not m:
        return Instruction(line, Command.NoCommand, source_pos=source_pos)
    cd = m.capturesdict()
    op = cd['op'][0].lower()
    args = cd['arg']

    if op in ARITHMETIC_COMMANDS:
        return Instruction(line, Command.Arithmetic, op, source_pos=source_pos)
    if op in PUSH_POP_COMMANDS:
        return _push_pop(line, op, args, source_pos)
    if op in BRANCH_COMMANDS:
        name = _name(args, 0, "label name", line, source_pos)
        return Instruction(line, Command.Branch, op, name=name, source_pos=source_pos)
    if op in FUNCTION_COMMANDS:
        if op == 'return':
            return Instruction(line, Command.Function, op, source_pos=source_pos)
        name = _name(args, 0, "function name", line, source_pos)
        count = _number(args, 1, "argument count" if op == 'call' else "local count", line, source_pos)
        return Instruction(line, Command.Function, op, name=name, count=count, source_pos=source_pos)

    return Instruction(line, Command.NoCommand, source_pos=source_pos)


class VMParser:
    def __init__(self, source: typing.TextIO, filename: str = UnknownSourcePos.file):
        self._source = source
        self._filename = filename
        self._line = -1
        self.instruction: Instruction | None = None

    def has_next(self) -> bool:
        while True:
            raw = self._source.readline()
            if raw == '':
                self.instruction = None
                return False
            self._line += 1
            line = raw.split('//', 1)[0].strip()
            if line == '':
                continue
            self.instruction = classify(line, SourcePos(self._filename, self._line))
            return True

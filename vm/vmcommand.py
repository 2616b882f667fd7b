import enum
from dataclasses import dataclass, field


@dataclass(frozen=True)
class SourcePos:
    file: str
    line: int

    def __str__(self):
        return f"{self.file}:{self.line + 1}"

UnknownSourcePos = SourcePos("<unknown>", 0)


class ParseError(RuntimeError):
    def __init__(self, message: str, source_pos: SourcePos = UnknownSourcePos):
        super().__init__(f"{source_pos}: {message}")
        self.message = message
        self.source_pos = source_pos


class Command(enum.Enum):
    Arithmetic = 'arithmetic'
    PushPop = 'push_pop'
    Branch = 'branch'
    Function = 'function'
    NoCommand = 'none'


class SegmentKind(enum.Enum):
    Internal = 'internal'
    External = 'external'


ARITHMETIC_COMMANDS = ('add', 'sub', 'neg', 'eq', 'gt', 'lt', 'and', 'or', 'not')
COMPARISON_COMMANDS = ('eq', 'gt', 'lt')
PUSH_POP_COMMANDS = ('push', 'pop')
BRANCH_COMMANDS = ('label', 'goto', 'if-goto')
FUNCTION_COMMANDS = ('function', 'call', 'return')

INTERNAL_SEGMENTS = ('local', 'argument', 'this', 'that')
EXTERNAL_SEGMENTS = ('constant', 'static', 'temp', 'pointer')

TEMP_SIZE = 8
POINTER_SIZE = 2


@dataclass(frozen=True)
class Segment:
    name: str
    kind: SegmentKind

    @staticmethod
    def lookup(name: str) -> "Segment | None":
        name = name.lower()
        if name in INTERNAL_SEGMENTS:
            return Segment(name, SegmentKind.Internal)
        if name in EXTERNAL_SEGMENTS:
            return Segment(name, SegmentKind.External)
        return None


@dataclass()
class Instruction:
    """One classified source line.

    Only the fields of the instruction's command family are set: push/pop
    carries ``segment`` and ``index``, label/goto/if-goto carries ``name``,
    function/call carries ``name`` and ``count``.
    """
    text: str
    command: Command
    op: str | None = None
    segment: Segment | None = None
    index: int | None = None
    name: str | None = None
    count: int | None = None
    source_pos: SourcePos = field(default=UnknownSourcePos, compare=False)

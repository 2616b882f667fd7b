import enum
import string
from dataclasses import dataclass

from bitstring import BitArray

import regex

ADDRESS_BITS = 15

symbol_regex = regex.compile(r"^[A-Za-z_.$:][A-Za-z0-9_.$:]*$")


class ParamCathegory(enum.Enum):
    Const = 'const'
    Symbol = 'symbol'
    Address = 'address'


@dataclass()
class Placeholder:
    name: str
    cathegory: ParamCathegory

    def encode(self, value: int | str) -> str:
        if isinstance(value, str):
            if self.cathegory == ParamCathegory.Const:
                raise RuntimeError(f"Placeholder {self.name} expects a number, got '{value}'")
            if not symbol_regex.match(value):
                raise RuntimeError(f"Placeholder {self.name} value '{value}' is not a valid symbol")
            return value

        if self.cathegory == ParamCathegory.Symbol:
            raise RuntimeError(f"Placeholder {self.name} expects a symbol, got {value!r}")
        if not isinstance(value, int) or isinstance(value, bool):
            raise RuntimeError(f"Placeholder {self.name} expects a number, got {value!r}")
        try:
            word = BitArray(uint=value, length=ADDRESS_BITS)
        except (ValueError, OverflowError):
            raise RuntimeError(f"Placeholder {self.name} value {value} overflow of "
                               f"0x{(1 << ADDRESS_BITS) - 1:04X}") from None
        return str(word.uint)


def _fields(text: str) -> list[str]:
    return [name for _, name, _, _ in string.Formatter().parse(text) if name is not None]


@dataclass()
class AsmTemplate:
    name: str
    comment: str
    lines: list[str]
    params: dict[str, Placeholder]

    def render(self, values: dict[str, int | str], source: str | None = None) -> str:
        missing = set(self.params) - set(values)
        if missing:
            raise RuntimeError(f"Template {self.name} missing values for {', '.join(sorted(missing))}")
        unknown = set(values) - set(self.params)
        if unknown:
            raise RuntimeError(f"Template {self.name} has no placeholders {', '.join(sorted(unknown))}")

        encoded = {name: self.params[name].encode(value) for name, value in values.items()}
        comment = source if source is not None else self.comment.format_map(encoded)
        body = [line.format_map(encoded) for line in self.lines]
        return '\n'.join([f"// {comment}", *body])


class AsmTemplateBuilder:
    def __init__(self, name: str):
        self._name = name
        self._comment = name
        self._lines: list[str] = []
        self._params: dict[str, Placeholder] = {}

    def comment(self, text: str) -> "AsmTemplateBuilder":
        self._comment = text
        return self

    def param(self, name: str, cathegory: ParamCathegory = ParamCathegory.Const) -> "AsmTemplateBuilder":
        self._params[name] = Placeholder(name, cathegory)
        return self

    def lines(self, *lines: str) -> "AsmTemplateBuilder":
        self._lines.extend(lines)
        return self

    def build(self) -> AsmTemplate:
        for text in [self._comment, *self._lines]:
            for name in _fields(text):
                if name not in self._params:
                    raise RuntimeError(f"Template {self._name} references unbound placeholder {{{name}}}")
        if not self._lines:
            raise RuntimeError(f"Template {self._name} is empty")
        return AsmTemplate(self._name, self._comment, list(self._lines), dict(self._params))


# *SP = D; SP++
PUSH_D = ('@SP', 'A=M', 'M=D', '@SP', 'M=M+1')
# SP--; D = *SP
POP_D = ('@SP', 'M=M-1', 'A=M', 'D=M')
# SP--; A = SP
POP_A = ('@SP', 'M=M-1', 'A=M')
INC_SP = ('@SP', 'M=M+1')


def _binary(name: str, operation: str) -> AsmTemplate:
    return AsmTemplateBuilder(name) \
        .lines(*POP_D) \
        .lines(*POP_A, operation) \
        .lines(*INC_SP) \
        .build()


def _unary(name: str, operation: str) -> AsmTemplate:
    return AsmTemplateBuilder(name) \
        .lines(*POP_A, operation) \
        .lines(*INC_SP) \
        .build()


def _comparison(name: str, jump: str) -> AsmTemplate:
    return AsmTemplateBuilder(name) \
        .param('i') \
        .lines(*POP_D) \
        .lines(*POP_A, 'D=M-D') \
        .lines('@CON_TRUE_{i}', f'D;{jump}') \
        .lines('@SP', 'A=M', 'M=0') \
        .lines('@CON_FINISH_{i}', '0;JMP') \
        .lines('(CON_TRUE_{i})') \
        .lines('@SP', 'A=M', 'M=-1') \
        .lines('(CON_FINISH_{i})') \
        .lines(*INC_SP) \
        .build()


def _push_pointer(register: str) -> tuple[str, ...]:
    return (f'@{register}', 'D=M', *PUSH_D)


class Templates:
    Builder = AsmTemplateBuilder
    Param = ParamCathegory

    ADD = _binary('add', 'M=M+D')
    SUB = _binary('sub', 'M=M-D')
    AND = _binary('and', 'M=M&D')
    OR = _binary('or', 'M=M|D')
    NEG = _unary('neg', 'M=-M')
    NOT = _unary('not', 'M=!M')
    EQ = _comparison('eq', 'JEQ')
    GT = _comparison('gt', 'JGT')
    LT = _comparison('lt', 'JLT')

    PUSH_INTERNAL = Builder('push_internal') \
                    .param('segment', Param.Symbol) \
                    .param('i') \
                    .lines('@{i}', 'D=A', '@{segment}', 'M=M+D') \
                    .lines('A=M', 'D=M') \
                    .lines(*PUSH_D) \
                    .lines('@{i}', 'D=A', '@{segment}', 'M=M-D') \
                    .build()

    POP_INTERNAL = Builder('pop_internal') \
                   .param('segment', Param.Symbol) \
                   .param('i') \
                   .lines('@{i}', 'D=A', '@{segment}', 'M=M+D') \
                   .lines(*POP_D) \
                   .lines('@{segment}', 'A=M', 'M=D') \
                   .lines('@{i}', 'D=A', '@{segment}', 'M=M-D') \
                   .build()

    PUSH_CONSTANT = Builder('push_constant') \
                    .param('i') \
                    .lines('@{i}', 'D=A') \
                    .lines(*PUSH_D) \
                    .build()

    PUSH_STATIC = Builder('push_static') \
                  .param('file_name', Param.Symbol) \
                  .param('i') \
                  .lines('@{file_name}.{i}', 'D=M') \
                  .lines(*PUSH_D) \
                  .build()

    POP_STATIC = Builder('pop_static') \
                 .param('file_name', Param.Symbol) \
                 .param('i') \
                 .lines(*POP_D) \
                 .lines('@{file_name}.{i}', 'M=D') \
                 .build()

    PUSH_TEMP = Builder('push_temp') \
                .param('segment', Param.Address) \
                .lines('@{segment}', 'D=M') \
                .lines(*PUSH_D) \
                .build()

    POP_TEMP = Builder('pop_temp') \
               .param('segment', Param.Address) \
               .lines(*POP_D) \
               .lines('@{segment}', 'M=D') \
               .build()

    PUSH_POINTER = Builder('push_pointer') \
                   .param('segment', Param.Symbol) \
                   .lines('@{segment}', 'D=M') \
                   .lines(*PUSH_D) \
                   .build()

    POP_POINTER = Builder('pop_pointer') \
                  .param('segment', Param.Symbol) \
                  .lines(*POP_D) \
                  .lines('@{segment}', 'M=D') \
                  .build()

    LABEL = Builder('label') \
            .param('label_name', Param.Symbol) \
            .lines('({label_name})') \
            .build()

    GOTO = Builder('goto') \
           .param('label_name', Param.Symbol) \
           .lines('@{label_name}', '0;JMP') \
           .build()

    IF_GOTO = Builder('if-goto') \
              .param('label_name', Param.Symbol) \
              .lines(*POP_D) \
              .lines('@{label_name}', 'D;JNE') \
              .build()

    FUNCTION = Builder('function') \
               .comment('function {function_name} {Vars}') \
               .param('function_name', Param.Symbol) \
               .param('Vars') \
               .lines('({function_name})') \
               .build()

    LOCAL_INIT = Builder('local_init') \
                 .comment('initialize local {i}') \
                 .param('i') \
                 .lines('@{i}', 'D=A', '@LCL', 'A=M+D', 'M=0') \
                 .lines(*INC_SP) \
                 .build()

    CALL = Builder('call') \
           .comment('call {function_name} {Args}') \
           .param('function_name', Param.Symbol) \
           .param('Args') \
           .param('i') \
           .lines('@{function_name}$ret${i}', 'D=A') \
           .lines(*PUSH_D) \
           .lines(*_push_pointer('LCL')) \
           .lines(*_push_pointer('ARG')) \
           .lines(*_push_pointer('THIS')) \
           .lines(*_push_pointer('THAT')) \
           .lines('@SP', 'D=M', '@5', 'D=D-A', '@{Args}', 'D=D-A', '@ARG', 'M=D') \
           .lines('@SP', 'D=M', '@LCL', 'M=D') \
           .lines('@{function_name}', '0;JMP') \
           .lines('({function_name}$ret${i})') \
           .build()

    # R13 holds the frame base, R14 the return address
    RETURN = Builder('return') \
             .lines('@LCL', 'D=M', '@R13', 'M=D') \
             .lines('@5', 'A=D-A', 'D=M', '@R14', 'M=D') \
             .lines(*POP_D) \
             .lines('@ARG', 'A=M', 'M=D') \
             .lines('@ARG', 'D=M+1', '@SP', 'M=D') \
             .lines('@R13', 'AM=M-1', 'D=M', '@THAT', 'M=D') \
             .lines('@R13', 'AM=M-1', 'D=M', '@THIS', 'M=D') \
             .lines('@R13', 'AM=M-1', 'D=M', '@ARG', 'M=D') \
             .lines('@R13', 'AM=M-1', 'D=M', '@LCL', 'M=D') \
             .lines('@R14', 'A=M', '0;JMP') \
             .build()

    SET_SP = Builder('bootstrap') \
             .comment('bootstrap: SP = {i}') \
             .param('i') \
             .lines('@{i}', 'D=A', '@SP', 'M=D') \
             .build()

    HALT = Builder('halt') \
           .comment('halt') \
           .param('label_name', Param.Symbol) \
           .lines('({label_name})', '@{label_name}', '0;JMP') \
           .build()

    all_templates: dict[str, AsmTemplate] = {}


Templates.all_templates = {getattr(Templates, attr).name: getattr(Templates, attr)
                           for attr in dir(Templates)
                           if isinstance(getattr(Templates, attr), AsmTemplate)
                           }

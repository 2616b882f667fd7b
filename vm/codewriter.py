import typing
from dataclasses import dataclass
from pathlib import PurePath

from vmcommand import Command, Instruction, SegmentKind, COMPARISON_COMMANDS
from asmtemplates import AsmTemplate, Templates

INTERNAL_SYMBOLS = {
    'local': 'LCL',
    'argument': 'ARG',
    'this': 'THIS',
    'that': 'THAT',
}

POINTER_SYMBOLS = ('THIS', 'THAT')


@dataclass()
class HackLayout:
    stack_base: int = 256
    temp_base: int = 5
    entry_function: str = 'Sys.init'
    halt_label: str = 'BOOTSTRAP_HALT'


@dataclass()
class WriterState:
    logical_label_counter: int = 0
    call_site_counter: int = 0
    file_name: str = ''
    function_name: str = ''


class CodeWriter:
    """Emits Hack assembly for classified VM instructions.

    One writer is used for a whole translation run: label counters live in
    ``state`` and keep growing across input files, so every comparison and
    call site gets its own labels in the merged output.
    """

    def __init__(self, output: typing.TextIO, state: WriterState | None = None, layout: HackLayout | None = None):
        self._output = output
        self.state = state or WriterState()
        self.layout = layout or HackLayout()

    def set_file_name(self, file_name: str):
        self.state.file_name = PurePath(file_name).stem
        self.state.function_name = ''

    def _emit(self, template: AsmTemplate, source: str | None = None, **values: int | str):
        self._output.write(template.render(values, source) + '\n')

    @staticmethod
    def _expect(instruction: Instruction, command: Command):
        if instruction.command != command:
            raise RuntimeError(f"Command {instruction.command.value} '{instruction.text}' "
                               f"is not a {command.value} command")

    def _scoped(self, label: str) -> str:
        # F$L inside a function, Unit$top$L before any; return labels are F$ret$n
        if self.state.function_name:
            return f"{self.state.function_name}${label}"
        return f"{self.state.file_name}$top${label}"

    def write_init(self):
        self._emit(Templates.SET_SP, i=self.layout.stack_base)
        self._write_call(self.layout.entry_function, 0, f"call {self.layout.entry_function} 0")
        self._emit(Templates.HALT, label_name=self.layout.halt_label)

    def write_arithmetic(self, instruction: Instruction):
        self._expect(instruction, Command.Arithmetic)
        template = Templates.all_templates[instruction.op]
        if instruction.op in COMPARISON_COMMANDS:
            self._emit(template, instruction.text, i=self.state.logical_label_counter)
            self.state.logical_label_counter += 1
        else:
            self._emit(template, instruction.text)

    def write_push_pop(self, instruction: Instruction):
        self._expect(instruction, Command.PushPop)
        segment = instruction.segment
        index = instruction.index

        if segment.kind == SegmentKind.Internal:
            template = Templates.all_templates[f"{instruction.op}_internal"]
            self._emit(template, instruction.text, segment=INTERNAL_SYMBOLS[segment.name], i=index)
            return

        template = Templates.all_templates.get(f"{instruction.op}_{segment.name}")
        if template is None:
            raise RuntimeError(f"No template for '{instruction.text}'")
        if segment.name == 'constant':
            self._emit(template, instruction.text, i=index)
        elif segment.name == 'static':
            self._emit(template, instruction.text, file_name=self.state.file_name, i=index)
        elif segment.name == 'temp':
            self._emit(template, instruction.text, segment=self.layout.temp_base + index)
        elif segment.name == 'pointer':
            self._emit(template, instruction.text, segment=POINTER_SYMBOLS[index])

    def write_branch(self, instruction: Instruction):
        self._expect(instruction, Command.Branch)
        template = Templates.all_templates[instruction.op]
        self._emit(template, instruction.text, label_name=self._scoped(instruction.name))

    def write_function(self, instruction: Instruction):
        self._expect(instruction, Command.Function)
        if instruction.op == 'function':
            self.state.function_name = instruction.name
            self._emit(Templates.FUNCTION, instruction.text,
                       function_name=instruction.name, Vars=instruction.count)
            for i in range(instruction.count):
                self._emit(Templates.LOCAL_INIT, i=i)
        elif instruction.op == 'call':
            self._write_call(instruction.name, instruction.count, instruction.text)
        else:
            self._emit(Templates.RETURN, instruction.text)

    def _write_call(self, function_name: str, args: int, source: str):
        self._emit(Templates.CALL, source, function_name=function_name, Args=args, i=self.state.call_site_counter)
        self.state.call_site_counter += 1

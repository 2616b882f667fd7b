"""Minimal Hack CPU used by the tests to execute emitted assembly."""

import regex

WORD_MASK = 0xFFFF

PREDEFINED_SYMBOLS = {
    'SP': 0, 'LCL': 1, 'ARG': 2, 'THIS': 3, 'THAT': 4,
    'SCREEN': 0x4000, 'KBD': 0x6000,
    **{f'R{i}': i for i in range(16)},
}

label_regex = regex.compile(r"^\((?<label>[^)]+)\)$")
c_regex = regex.compile(r"^(?:(?<dest>[ADM]{1,3})=)?(?<comp>[^;=]+)(?:;(?<jump>J[A-Z]{2}))?$")


def signed(value: int) -> int:
    return value - 0x10000 if value & 0x8000 else value


class HackCPU:
    def __init__(self, source: str):
        self.ram = [0] * 0x10000
        self.a = 0
        self.d = 0
        self.pc = 0
        self.labels: dict[str, int] = {}
        self.symbols: dict[str, int] = {}
        self.code: list[tuple] = []
        self._load(source)

    def _load(self, source: str):
        program = []
        for line in source.split('\n'):
            line = line.split('//', 1)[0].strip()
            if line == '':
                continue
            m = label_regex.match(line)
            if m:
                if m.group('label') in self.labels:
                    raise RuntimeError(f"Duplicate label {m.group('label')}")
                self.labels[m.group('label')] = len(program)
            else:
                program.append(line)

        self.symbols = {**PREDEFINED_SYMBOLS, **self.labels}
        next_variable = 16
        for line in program:
            if line.startswith('@'):
                value = line[1:]
                if value.isdigit():
                    self.code.append(('A', int(value)))
                    continue
                if value not in self.symbols:
                    self.symbols[value] = next_variable
                    next_variable += 1
                self.code.append(('A', self.symbols[value]))
            else:
                m = c_regex.match(line)
                if not m:
                    raise RuntimeError(f"Bad instruction '{line}'")
                self.code.append(('C', m.group('dest') or '', m.group('comp'), m.group('jump') or ''))

    def _operand(self, name: str) -> int:
        if name == 'A':
            return self.a
        if name == 'D':
            return self.d
        if name == 'M':
            return self.ram[self.a]
        if name in ('0', '1'):
            return int(name)
        raise RuntimeError(f"Bad operand '{name}'")

    def _compute(self, comp: str) -> int:
        if comp == '-1':
            return WORD_MASK
        if len(comp) == 1:
            return self._operand(comp)
        if len(comp) == 2:
            x = self._operand(comp[1])
            if comp[0] == '!':
                return ~x & WORD_MASK
            if comp[0] == '-':
                return -x & WORD_MASK
            raise RuntimeError(f"Bad computation '{comp}'")
        if len(comp) != 3:
            raise RuntimeError(f"Bad computation '{comp}'")
        x, op, y = self._operand(comp[0]), comp[1], self._operand(comp[2])
        if op == '+':
            return (x + y) & WORD_MASK
        if op == '-':
            return (x - y) & WORD_MASK
        if op == '&':
            return x & y
        if op == '|':
            return x | y
        raise RuntimeError(f"Bad computation '{comp}'")

    @staticmethod
    def _jumps(jump: str, value: int) -> bool:
        v = signed(value)
        return {
            '': False,
            'JGT': v > 0,
            'JEQ': v == 0,
            'JGE': v >= 0,
            'JLT': v < 0,
            'JNE': v != 0,
            'JLE': v <= 0,
            'JMP': True,
        }[jump]

    def step(self):
        inst = self.code[self.pc]
        if inst[0] == 'A':
            self.a = inst[1]
            self.pc += 1
            return

        _, dest, comp, jump = inst
        value = self._compute(comp)
        address = self.a
        if 'M' in dest:
            self.ram[address] = value
        if 'D' in dest:
            self.d = value
        if 'A' in dest:
            self.a = value
        self.pc = address if self._jumps(jump, value) else self.pc + 1

    def run(self, stop_at: str | None = None, max_steps: int = 100_000):
        stop = self.labels[stop_at] if stop_at is not None else None
        for _ in range(max_steps):
            if self.pc >= len(self.code) or self.pc == stop:
                return
            self.step()
        raise RuntimeError(f"No halt after {max_steps} steps (pc={self.pc})")

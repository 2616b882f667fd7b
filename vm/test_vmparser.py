import io

import pytest

from vmcommand import Command, Segment, SegmentKind, ParseError, SourcePos, UnknownSourcePos, Instruction
from vmparser import VMParser, classify


def make_parser(text: str) -> VMParser:
    return VMParser(io.StringIO(text), "Test.vm")


def test_has_next_skips_comments_and_blank_lines():
    parser = make_parser("// test\npush static 1 //test\npop temp 2\n\nadd ")
    assert parser.has_next()
    assert parser.instruction.text == "push static 1"
    assert parser.has_next()
    assert parser.instruction.text == "pop temp 2"
    assert parser.has_next()
    assert parser.instruction.text == "add"
    assert not parser.has_next()
    assert parser.instruction is None


def test_empty_input():
    assert not make_parser("").has_next()
    assert not make_parser("// only a comment\n\n   \n\t// another\n").has_next()


def test_source_positions():
    parser = make_parser("// header\n\npush constant 1\n")
    assert parser.has_next()
    assert parser.instruction.source_pos == SourcePos("Test.vm", 2)
    assert str(parser.instruction.source_pos) == "Test.vm:3"


def test_arithmetic():
    for op in ('add', 'sub', 'neg', 'eq', 'gt', 'lt', 'and', 'or', 'not'):
        instruction = classify(op)
        assert instruction.command == Command.Arithmetic
        assert instruction.op == op
        assert instruction.segment is None
        assert instruction.index is None


def test_push_pop_segments():
    instruction = classify("push local 3")
    assert instruction.command == Command.PushPop
    assert instruction.op == 'push'
    assert instruction.segment == Segment('local', SegmentKind.Internal)
    assert instruction.index == 3

    instruction = classify("pop static 12")
    assert instruction.op == 'pop'
    assert instruction.segment == Segment('static', SegmentKind.External)
    assert instruction.index == 12

    for name in ('local', 'argument', 'this', 'that'):
        assert classify(f"push {name} 0").segment.kind == SegmentKind.Internal
    for name in ('constant', 'static', 'temp', 'pointer'):
        assert classify(f"push {name} 0").segment.kind == SegmentKind.External


def test_case_insensitive_keywords():
    instruction = classify("PUSH Constant 7")
    assert instruction.command == Command.PushPop
    assert instruction.op == 'push'
    assert instruction.segment.name == 'constant'
    assert classify("Add").command == Command.Arithmetic


def test_tabs_between_tokens():
    instruction = classify("pop\tthat \t 4")
    assert instruction.segment.name == 'that'
    assert instruction.index == 4


def test_other_inline_whitespace_between_tokens():
    instruction = classify("push\x0bconstant\x0c7")
    assert instruction.command == Command.PushPop
    assert instruction.segment.name == 'constant'
    assert instruction.index == 7

    parser = make_parser("pop\x0btemp 1\r\nadd\n")
    assert parser.has_next()
    assert parser.instruction.segment.name == 'temp'
    assert parser.has_next()
    assert parser.instruction.op == 'add'


def test_branch():
    instruction = classify("if-goto LOOP_START")
    assert instruction.command == Command.Branch
    assert instruction.op == 'if-goto'
    assert instruction.name == 'LOOP_START'
    assert instruction.segment is None
    assert instruction.index is None
    assert classify("label END").op == 'label'
    assert classify("goto END").op == 'goto'


def test_function_call_return():
    instruction = classify("function Foo.bar 3")
    assert instruction.command == Command.Function
    assert (instruction.op, instruction.name, instruction.count) == ('function', 'Foo.bar', 3)

    instruction = classify("call Math.multiply 2")
    assert (instruction.op, instruction.name, instruction.count) == ('call', 'Math.multiply', 2)

    instruction = classify("return")
    assert instruction.command == Command.Function
    assert instruction.op == 'return'
    assert instruction.name is None
    assert instruction.count is None


def test_unknown_command_is_not_an_error():
    instruction = classify("jump somewhere 4")
    assert instruction.command == Command.NoCommand

    parser = make_parser("frobnicate\npush constant 1\n")
    assert parser.has_next()
    assert parser.instruction.command == Command.NoCommand
    assert parser.has_next()
    assert parser.instruction.command == Command.PushPop


def test_classification_is_idempotent():
    for line in ("push argument 2", "lt", "goto X", "call A.b 1", "return", "nope"):
        assert classify(line) == classify(line)


@pytest.mark.parametrize("line", [
    "push constant",
    "push constant x",
    "pop local -1",
    "push",
    "push heap 1",
    "function Foo.bar",
    "function Foo.bar many",
    "call Foo.bar",
    "label",
    "goto",
    "pop constant 3",
    "push pointer 2",
    "pop temp 8",
    "label a$b",
    "goto Foo$ret$0",
    "function Foo$bar 0",
    "call Foo$ret 1",
])
def test_malformed_lines(line):
    with pytest.raises(ParseError):
        classify(line)


def test_parse_error_carries_position():
    parser = make_parser("push constant 1\n\npush local oops\n")
    assert parser.has_next()
    with pytest.raises(ParseError) as e:
        parser.has_next()
    assert e.value.source_pos == SourcePos("Test.vm", 2)
    assert "Test.vm:3" in str(e.value)


def test_instruction_defaults_to_unknown_position():
    instruction = Instruction("add", Command.Arithmetic, 'add')
    assert instruction.source_pos is UnknownSourcePos
    assert instruction == classify("add", SourcePos("Test.vm", 4))
    assert len({SourcePos("Test.vm", 1), SourcePos("Test.vm", 1)}) == 1

import errno
import io
import sys
import typing
from argparse import ArgumentParser, BooleanOptionalAction
from pathlib import Path

from vmcommand import Command, ParseError
from vmparser import VMParser
from codewriter import CodeWriter, HackLayout


def collect_sources(target: Path) -> list[Path]:
    if not target.exists():
        raise OSError(errno.ENOENT, "No such file or directory", str(target))
    if target.is_dir():
        sources = sorted(target.glob('*.vm'))
        if not sources:
            raise RuntimeError(f"No .vm files found in {target}")
        return sources
    return [target]


def default_output(target: Path) -> Path:
    if target.is_dir():
        return target / f"{target.name}.asm"
    return target.with_suffix('.asm')


def translate_source(writer: CodeWriter, source: typing.TextIO, filename: str):
    handlers = {
        Command.Arithmetic: writer.write_arithmetic,
        Command.PushPop: writer.write_push_pop,
        Command.Branch: writer.write_branch,
        Command.Function: writer.write_function,
    }
    writer.set_file_name(filename)
    parser = VMParser(source, filename)
    while parser.has_next():
        handler = handlers.get(parser.instruction.command)
        if handler is not None:
            handler(parser.instruction)


def translate_text(text: str, file_name: str = 'Main', bootstrap: bool = False,
                   layout: HackLayout | None = None) -> str:
    output = io.StringIO()
    writer = CodeWriter(output, layout=layout)
    if bootstrap:
        writer.write_init()
    translate_source(writer, io.StringIO(text), file_name)
    return output.getvalue()


def run(target: str | Path, output: str | Path | None = None, bootstrap: bool | None = None,
        layout: HackLayout | None = None, quiet: bool = False) -> Path:
    target = Path(target)
    sources = collect_sources(target)
    output = Path(output) if output is not None else default_output(target)
    if bootstrap is None:
        bootstrap = target.is_dir()

    with open(output, 'w', encoding='utf-8') as w:
        writer = CodeWriter(w, layout=layout)
        if bootstrap:
            writer.write_init()
        for path in sources:
            if not quiet:
                print(f"Translating {path}...")
            with open(path, encoding='utf-8') as f:
                try:
                    translate_source(writer, f, path.name)
                except UnicodeDecodeError as e:
                    raise RuntimeError(f"Cannot decode {path} as UTF-8: {e.reason}") from e

    if not quiet:
        print(f"Done: {output}")
    return output


def main(argv: list[str] | None = None) -> int:
    args_parser = ArgumentParser(description="Translate VM code to Hack assembly")
    args_parser.add_argument('target', help=".vm file or directory of .vm files")
    args_parser.add_argument('output', nargs='?', help="output .asm file")
    args_parser.add_argument('--bootstrap', action=BooleanOptionalAction, default=None,
                             help="emit bootstrap code (default: only for directories)")
    args_parser.add_argument('--stack-base', type=int, default=HackLayout.stack_base)
    args_parser.add_argument('--entry', default=HackLayout.entry_function, help="program entry function")
    args_parser.add_argument('-q', '--quiet', action='store_true')
    args = args_parser.parse_args(sys.argv[1:] if argv is None else argv)

    layout = HackLayout(stack_base=args.stack_base, entry_function=args.entry)
    try:
        run(args.target, args.output, bootstrap=args.bootstrap, layout=layout, quiet=args.quiet)
    except ParseError as e:
        print(f"error at {e.source_pos}: {e.message}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"error: cannot access {e.filename}: {e.strerror}", file=sys.stderr)
        return 1
    except RuntimeError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())

import argparse
import pathlib
import sys


VALID_TOKENS = "<>[].,+-"
MINIMUM_TAPE_SIZE = 30_000


class InterpreterError(Exception):
    def __init__(self, message: str):
        super().__init__(message)


class MissingClosingBracket(InterpreterError):
    pass


class MissingOpeningBracket(InterpreterError):
    pass


class EndOfTape(InterpreterError):
    pass


class StdinReadFailure(InterpreterError):
    pass


class CellOverflow(InterpreterError):
    pass


class CellUnderflow(InterpreterError):
    pass


class Tape:
    """
    Byte cells plus the data pointer.

    With wrap=True cells wrap modulo 256, otherwise stepping past either end
    of the byte range raises. With grow=True moving right past the last cell
    appends a zero cell, otherwise it raises EndOfTape. Moving left of cell 0
    always raises EndOfTape.
    """

    def __init__(self, cells: int = MINIMUM_TAPE_SIZE, wrap: bool = True, grow: bool = True):
        self.cells = bytearray(cells)
        self.pointer = 0
        self.wrap = wrap
        self.grow = grow

    def __len__(self):
        return len(self.cells)

    def increment(self):
        value = self.cells[self.pointer]
        if value == 0xFF and not self.wrap:
            raise CellOverflow("cell overflow at %d" % self.pointer)
        self.cells[self.pointer] = (value + 1) & 0xFF

    def decrement(self):
        value = self.cells[self.pointer]
        if value == 0 and not self.wrap:
            raise CellUnderflow("cell underflow at %d" % self.pointer)
        self.cells[self.pointer] = (value - 1) & 0xFF

    def read(self) -> int:
        return self.cells[self.pointer]

    def write(self, value: int):
        self.cells[self.pointer] = value

    def move_right(self):
        if self.pointer == len(self.cells) - 1:
            if not self.grow:
                raise EndOfTape("pointer out of range (%d)" % len(self.cells))
            self.cells.append(0)
        self.pointer += 1

    def move_left(self):
        if self.pointer == 0:
            raise EndOfTape("pointer out of range (-1)")
        self.pointer -= 1


def tokenize(source: str) -> list[str]:
    """
    Strip out everything that is not an instruction.
    """
    return [c for c in source if c in VALID_TOKENS]


class ProgramCursor:
    """
    Append-only token sequence with a current position.
    """

    def __init__(self, tokens=None):
        self.tokens = list(tokens or [])
        self.position = 0

    def __len__(self):
        return len(self.tokens)

    def current(self) -> str:
        if not self.tokens:
            raise IndexError("no instructions loaded")
        return self.tokens[self.position]

    def advance(self) -> bool:
        # stays on the last token when there is nothing left
        if self.position + 1 < len(self.tokens):
            self.position += 1
            return True
        return False

    def retreat(self):
        if self.position == 0:
            raise MissingOpeningBracket("no matching '[' before index %d" % self.position)
        self.position -= 1

    def append(self, tokens):
        self.tokens.extend(tokens)


def skip_forward(cursor: ProgramCursor, level: int) -> bool:
    """
    Given a cursor on a '[' and the nesting level before it, move the cursor
    just past its matching ']'.

    Returns False when the matching ']' is the last token, in which case the
    cursor stays on it and there is nothing left to run.
    """
    start = cursor.position
    depth = level
    while True:
        char = cursor.current()
        if char == "[":
            depth += 1
        elif char == "]":
            if depth == 0:
                raise MissingOpeningBracket("unmatched ']' at index %d" % cursor.position)
            depth -= 1
            if depth == level:
                return cursor.advance()

        if not cursor.advance():
            raise MissingClosingBracket("mismatched bracket at index %d" % start)


def skip_backward(cursor: ProgramCursor, level: int):
    """
    Given a cursor on a ']' and the nesting level inside its loop, move the
    cursor back onto the matching '['.
    """
    if level == 0:
        raise MissingOpeningBracket("unmatched ']' at index %d" % cursor.position)

    target = level - 1
    depth = level
    while True:
        cursor.retreat()
        char = cursor.current()
        if char == "]":
            depth += 1
        elif char == "[":
            depth -= 1
            if depth == target:
                return


def read_byte(stream) -> int:
    """
    Read one line from stream and parse it as a cell value.
    """
    try:
        line = stream.readline()
    except OSError as err:
        raise StdinReadFailure("could not read input: %s" % err) from err

    if not line:
        raise StdinReadFailure("reached eof when reading input")

    text = line.strip()
    # a single leading plus sign is allowed
    digits = text[1:] if text.startswith("+") else text
    if not (digits.isascii() and digits.isdigit()) or int(digits) > 0xFF:
        raise StdinReadFailure("expected a number in 0-255, got %r" % text)

    return int(digits)


def write_byte(stream, value: int):
    """
    Write value to stream as one raw byte.

    Text streams backed by a binary buffer get the byte itself rather than
    the encoded character; in-memory text streams get chr(value).
    """
    buffer = getattr(stream, "buffer", None)
    if buffer is None:
        stream.write(chr(value))
        stream.flush()
        return

    # keep anything already written through the text layer in order
    stream.flush()
    buffer.write(bytes([value]))
    buffer.flush()


class Interpreter:
    """
    Runs a growing program against one tape.

    The tape, the program and the nesting level survive between calls to
    interpret(), so source can be fed in pieces and loops may span pieces.
    """

    def __init__(self, cells: int = MINIMUM_TAPE_SIZE, wrap: bool = True, grow: bool = True,
                 stdin=None, stdout=None):
        self.cells = cells
        self.wrap = wrap
        self.grow = grow
        self.stdin = stdin
        self.stdout = stdout
        self.reset()

    def reset(self):
        self.tape = Tape(self.cells, self.wrap, self.grow)
        self.program = ProgramCursor()
        # number of loops entered and not yet left
        self.nesting = 0
        # set once the token under the cursor has been executed
        self.halted = False

    def feed(self, source: str):
        self.program.append(tokenize(source))

    def interpret(self):
        """
        Execute every token not yet executed.
        """
        program = self.program
        tape = self.tape

        if not program:
            return
        if self.halted:
            if not program.advance():
                return
            self.halted = False

        while True:
            match program.current():
                case "[":
                    if tape.read() == 0:
                        if not skip_forward(program, self.nesting):
                            self.halted = True
                            return
                        continue
                    self.nesting += 1
                case "]":
                    if tape.read() != 0:
                        skip_backward(program, self.nesting)
                        self.nesting -= 1
                        continue
                    if self.nesting == 0:
                        raise MissingOpeningBracket("unmatched ']' at index %d" % program.position)
                    self.nesting -= 1
                case ".":
                    write_byte(self.stdout or sys.stdout, tape.read())
                case ",":
                    tape.write(read_byte(self.stdin or sys.stdin))
                case "+":
                    tape.increment()
                case "-":
                    tape.decrement()
                case ">":
                    tape.move_right()
                case "<":
                    tape.move_left()

            if not program.advance():
                self.halted = True
                return

    def finish(self):
        if self.nesting > 0:
            raise MissingClosingBracket("%d loop(s) left open at end of program" % self.nesting)

    def run(self, source: str):
        """
        Interpret a complete program.
        """
        self.feed(source)
        self.interpret()
        self.finish()


# entry point
def run_file(path, interpreter: Interpreter) -> int:
    try:
        with open(path, "r") as fp:
            source = fp.read()
    except (OSError, UnicodeDecodeError) as err:
        sys.stderr.write("fatal: could not read %s: %s\n" % (path, err))
        return 1

    try:
        interpreter.run(source)
    except InterpreterError as err:
        sys.stderr.write("fatal: %s\n" % str(err))
        return 1

    return 0


def repl(interpreter: Interpreter):
    line_number = 0
    while True:
        sys.stdout.write("[%d] " % line_number)
        sys.stdout.flush()
        try:
            line = sys.stdin.readline()
        except KeyboardInterrupt:
            line = ""
        if not line:
            sys.stdout.write("\n")
            return

        line_number += 1
        text = line.strip()
        if not text or text == ";":
            continue

        interpreter.feed(line)
        try:
            interpreter.interpret()
        except KeyboardInterrupt:
            sys.stdout.write("\n")
            return
        except InterpreterError as err:
            sys.stderr.write("error: %s; resetting interpreter\n" % str(err))
            interpreter.reset()


def read_options(argv=None):
    parser = argparse.ArgumentParser(description="Interpret BF programs, or start a REPL.")
    parser.add_argument("source", type=pathlib.Path, help="The file to interpret.", nargs="?")
    parser.add_argument("unused", nargs="*", help=argparse.SUPPRESS)
    parser.add_argument("--cells", type=int, default=MINIMUM_TAPE_SIZE,
                        help="Initial number of cells in the memory tape.")
    parser.add_argument("--fixed-tape", action="store_true",
                        help="Fail instead of growing the tape past its last cell.")
    parser.add_argument("--strict-cells", action="store_true",
                        help="Fail on cell overflow/underflow instead of wrapping.")

    return parser.parse_args(argv)


def main(argv=None):
    options = read_options(argv)

    if options.unused:
        sys.stderr.write("fatal: unused command arguments: %s\n" % " ".join(options.unused))
        sys.exit(1)

    if options.cells < MINIMUM_TAPE_SIZE:
        sys.stderr.write("fatal: a tape of less than 30,000 cells is not supported\n")
        sys.exit(1)

    interpreter = Interpreter(options.cells, wrap=not options.strict_cells, grow=not options.fixed_tape)

    if options.source is None:
        repl(interpreter)
    else:
        status = run_file(options.source, interpreter)
        if status != 0:
            sys.exit(status)


if __name__ == '__main__':
    main()

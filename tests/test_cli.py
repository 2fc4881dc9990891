import io
import pathlib

import pytest

import bfrepl


PROGRAMS = pathlib.Path(__file__).parent / "programs"


def session(monkeypatch, capsys, text):
    monkeypatch.setattr("sys.stdin", io.StringIO(text))
    bfrepl.main([])
    return capsys.readouterr()


def test_run_file(capsys):
    bfrepl.main([str(PROGRAMS / "hello.bf")])
    captured = capsys.readouterr()
    assert captured.out == "Hello World!\n"
    assert captured.err == ""


def test_run_file_with_error(tmp_path, capsys):
    path = tmp_path / "bad.bf"
    path.write_text("+[")
    with pytest.raises(SystemExit) as exc:
        bfrepl.main([str(path)])
    assert exc.value.code == 1
    assert capsys.readouterr().err.startswith("fatal: ")


def test_missing_file(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        bfrepl.main([str(tmp_path / "missing.bf")])
    assert exc.value.code == 1
    assert "could not read" in capsys.readouterr().err


def test_unused_arguments(capsys):
    with pytest.raises(SystemExit) as exc:
        bfrepl.main(["a.bf", "b.bf", "c.bf"])
    assert exc.value.code == 1
    assert "unused command arguments: b.bf c.bf" in capsys.readouterr().err


def test_small_tape_rejected(capsys):
    with pytest.raises(SystemExit) as exc:
        bfrepl.main(["--cells", "10", "x.bf"])
    assert exc.value.code == 1


def test_fixed_tape_option(tmp_path, capsys):
    path = tmp_path / "walk.bf"
    path.write_text(">" * bfrepl.MINIMUM_TAPE_SIZE)
    bfrepl.main([str(path)])
    with pytest.raises(SystemExit):
        bfrepl.main(["--fixed-tape", str(path)])
    assert "pointer out of range" in capsys.readouterr().err


def test_strict_cells_option(tmp_path, capsys):
    path = tmp_path / "under.bf"
    path.write_text("-")
    with pytest.raises(SystemExit):
        bfrepl.main(["--strict-cells", str(path)])
    assert "underflow" in capsys.readouterr().err


def test_repl_prompts_and_skips(monkeypatch, capsys):
    captured = session(monkeypatch, capsys, ";\n\n  ; \n")
    assert captured.out == "[0] [1] [2] [3] \n"


def test_repl_loop_across_lines(monkeypatch, capsys):
    captured = session(monkeypatch, capsys, "++++++++[\n>++++++++<-]\n>+.\n")
    assert captured.out == "[0] [1] [2] A[3] \n"
    assert captured.err == ""


def test_repl_input_instruction(monkeypatch, capsys):
    captured = session(monkeypatch, capsys, ",.\n66\n")
    assert captured.out == "[0] B[1] \n"


def test_repl_resets_after_error(monkeypatch, capsys):
    captured = session(monkeypatch, capsys, "+++\n<\n.\n")
    assert "resetting interpreter" in captured.err
    # the tape was cleared, so the cell prints as NUL
    assert captured.out == "[0] [1] [2] \0[3] \n"


class InterruptedInput(io.StringIO):
    """Delivers its text, then behaves as if Ctrl-C was pressed."""

    def readline(self, *args):
        line = super().readline(*args)
        if not line:
            raise KeyboardInterrupt
        return line


def test_repl_interrupt_while_reading_input(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", InterruptedInput(",\n"))
    bfrepl.main([])
    captured = capsys.readouterr()
    assert captured.out == "[0] \n"
    assert captured.err == ""


def test_repl_interrupt_at_prompt(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", InterruptedInput("+\n"))
    bfrepl.main([])
    assert capsys.readouterr().out == "[0] [1] \n"


def test_repl_high_byte_output(monkeypatch, capsysbinary):
    monkeypatch.setattr("sys.stdin", io.StringIO("+" * 200 + ".\n"))
    bfrepl.main([])
    assert capsysbinary.readouterr().out == b"[0] \xc8[1] \n"

import io
import json

import pytest

from stablecx_check_cli import main


def run(capsys, argv):
    main(argv)
    return json.loads(capsys.readouterr().out)


def test_task_argument(capsys):
    out = run(capsys, ["--task", '{"type": "eval", "op": "sqrt", "args": [[-4, 0]]}'])
    assert out["status"] == "ok"
    assert out["value"]["text"] == "0.0 + 2.0i"


def test_task_file(tmp_path, capsys):
    task = tmp_path / "task.json"
    task.write_text(json.dumps({"type": "check", "op": "div", "args": [[1, 1], [1e-200, 1e-200]]}))
    out = run(capsys, ["--file", str(task), "--pretty"])
    assert out["status"] == "accurate"


def test_task_from_stdin(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO('{"type": "eval", "op": "abs", "args": [[3, 4]]}'))
    out = run(capsys, [])
    assert out["value"] == 5.0


def test_dps_flag(capsys):
    out = run(capsys, ["--dps", "60", "--task", '{"type": "check", "op": "exp", "args": [[4, 2]]}'])
    assert out["manifest"]["mpmath_dps"] == 60


def test_solver_exception_becomes_error_payload(capsys):
    out = run(capsys, ["-v", "--task", '{"type": "scan", "op": "sqrt", "grid": []}'])
    assert out == {"status": "error", "error": "grid required and non-empty"}


@pytest.mark.parametrize("argv", [["--task", "{not json"], ["--task", "[1, 2]"], ["--file", "/nonexistent/task.json"]])
def test_bad_input_exits(argv, capsys):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    assert exc.value.code == 1
    assert capsys.readouterr().err


def test_load_error_names_the_source(tmp_path, capsys):
    missing = tmp_path / "missing.json"
    with pytest.raises(SystemExit):
        main(["--file", str(missing)])
    assert str(missing) in capsys.readouterr().err
    with pytest.raises(SystemExit):
        main(["--task", '"just a string"'])
    assert "--task must be a JSON object" in capsys.readouterr().err

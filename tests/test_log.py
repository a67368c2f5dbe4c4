import pytest

from utils.log import Step, stamp


def test_stamp_prints(capsys):
    stamp("hello")
    assert capsys.readouterr().out.rstrip().endswith("hello")


def test_step_reports_failure(capsys):
    with pytest.raises(RuntimeError):
        with Step("join"):
            raise RuntimeError("bad key")
    out = capsys.readouterr().out
    assert "▶ join" in out and "✖ join failed" in out and "bad key" in out

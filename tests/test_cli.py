from physarum.cli import main

SMALL = ["--steps", "3", "--species", "2", "--particles", "50", "--width", "32", "--height", "24"]


def test_runs_to_completion(capsys):
    assert main(SMALL + ["--workers", "2", "--kernel", "gaussian"]) == 0
    out = capsys.readouterr().out
    assert "Attraction matrix:" in out
    assert "Simulation complete" in out
    assert "channel 1: mass=" in out


def test_invalid_decay_fails(capsys):
    assert main(SMALL + ["--decay", "0"]) == 1
    assert "Error:" in capsys.readouterr().err

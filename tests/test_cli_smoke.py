import subprocess
import sys


def test_cli_help() -> None:
    cp = subprocess.run(
        [sys.executable, "-m", "switcherr", "--help"],
        check=True,
        capture_output=True,
        text=True,
    )
    assert "SwitchErr" in cp.stdout or "switcherr" in cp.stdout.lower()

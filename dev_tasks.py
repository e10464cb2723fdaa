#!/usr/bin/env python3
"""
Local checks for dryql: python dev_tasks.py {format|lint|test|check}

``DRYQL_TEST_DATABASE_URL`` (read by tests/conftest.py) points the test run at an
external database instead of in-memory SQLite.
"""

import subprocess
import sys

PATHS = ["dryql", "tests", "examples"]


def run(*args):
    print("Running:", " ".join(args))
    return subprocess.run(args).returncode == 0


def format_code():
    return run("black", *PATHS) and run("isort", *PATHS)


def lint():
    ok = run("mypy", "dryql")
    return run("flake8", *PATHS) and ok


def test():
    return run("pytest", "--cov=dryql", "--cov-report=term-missing")


def check():
    return lint() and test()


COMMANDS = {
    "format": format_code,
    "lint": lint,
    "test": test,
    "check": check,
}


def main():
    if len(sys.argv) != 2 or sys.argv[1] not in COMMANDS:
        print(__doc__.strip())
        sys.exit(2)
    sys.exit(0 if COMMANDS[sys.argv[1]]() else 1)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Functional test runner.

Usage:
    ./entry.py                               # Run all tests
    ./entry.py -t test_parachain_registration  # Run specific test

The node binary and runtime wasm are taken from `PARATEST_COLLATOR_BIN` and
`PARATEST_PARACHAIN_WASM`, or from a toml file named by `PARATEST_CONFIG`.
"""

import argparse
import logging
import os
import sys

import flexitest

from envconfigs.parachain import ParachainEnvConfig


def setup_logging() -> None:
    """Configure root logger."""
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="entry.py",
        description="Run functional tests",
    )
    parser.add_argument(
        "-t",
        "--test",
        nargs="*",
        help="Run specific test(s)",
    )
    return parser.parse_args(argv[1:])


def filter_tests(selected: list[str] | None, modules: dict[str, str]) -> dict[str, str]:
    """Keep only the modules named on the command line, by file name."""
    if not selected:
        return modules
    wanted = frozenset(os.path.split(t)[1].removesuffix(".py") for t in selected)
    return {name: path for name, path in modules.items() if name in wanted}


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    setup_logging()

    # Every node is supervised by the test itself, no service factories needed
    factories: dict[str, flexitest.Factory] = {}

    global_envs: dict[str, flexitest.EnvConfig] = {
        "parachain": ParachainEnvConfig(),
    }

    root_dir = os.path.dirname(os.path.abspath(__file__))
    datadir = flexitest.create_datadir_in_workspace(os.path.join(root_dir, "_dd"))
    runtime = flexitest.TestRuntime(global_envs, datadir, factories)

    test_dir = os.path.join(root_dir, "tests")
    modules = flexitest.runtime.scan_dir_for_modules(test_dir)
    modules = filter_tests(args.test, modules)
    tests = flexitest.runtime.load_candidate_modules(modules)

    runtime.prepare_registered_tests()
    results = runtime.run_tests(tests)

    runtime.save_json_file("results.json", results)
    flexitest.dump_results(results)

    flexitest.fail_on_error(results)

    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))

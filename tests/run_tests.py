# File: tests/run_tests.py
#!/usr/bin/env python3
"""
Test runner for Fleet Tracking System tests.

Usage:
    python tests/run_tests.py                       # all tests
    python tests/run_tests.py unit.test_strategies  # one module
"""

import unittest
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))
sys.path.append(str(Path(__file__).parent))


def run_all_tests():
    """Run all test suites"""
    test_loader = unittest.TestLoader()
    test_suite = test_loader.discover(str(Path(__file__).parent), pattern='test_*.py')

    test_runner = unittest.TextTestRunner(verbosity=2)
    return test_runner.run(test_suite)


def run_specific_test(test_name):
    """Run a specific test module, e.g. unit.test_repositories"""
    test_loader = unittest.TestLoader()
    test_suite = test_loader.loadTestsFromName(test_name)

    test_runner = unittest.TextTestRunner(verbosity=2)
    return test_runner.run(test_suite)


if __name__ == "__main__":
    if len(sys.argv) > 1:
        result = run_specific_test(sys.argv[1])
    else:
        result = run_all_tests()

    sys.exit(0 if result.wasSuccessful() else 1)

"""
Unit tests for the test runner's area selection.
"""

import os
import sys
import unittest
from io import StringIO
from unittest.mock import patch

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import run_tests


def iter_cases(suite):
    for test in suite:
        if isinstance(test, unittest.TestSuite):
            yield from iter_cases(test)
        else:
            yield test


class TestBuildSuite(unittest.TestCase):

    def test_area_selects_its_modules(self):
        suite = run_tests.build_suite(["rendering"])

        modules = {type(case).__module__ for case in iter_cases(suite)}
        self.assertEqual(modules, {"test_placeholder", "test_card_generator"})

    def test_offline_drops_socket_tests(self):
        online = {type(case).__name__ for case in iter_cases(run_tests.build_suite(["acquisition"]))}
        offline = {type(case).__name__ for case in iter_cases(run_tests.build_suite(["acquisition"], offline=True))}

        self.assertTrue(run_tests.SOCKET_TESTS <= online)
        self.assertFalse(run_tests.SOCKET_TESTS & offline)
        self.assertIn("TestImagenApiKeyProvider", offline)


class TestMain(unittest.TestCase):

    @patch("sys.stderr", new_callable=StringIO)
    def test_unknown_area_is_rejected(self, stderr):
        with self.assertRaises(SystemExit) as ctx:
            run_tests.main(["weather"])

        self.assertEqual(ctx.exception.code, 2)
        self.assertIn("unknown test area(s): weather", stderr.getvalue())

    @patch("run_tests.unittest.TextTestRunner")
    def test_quiet_and_verbose_flags(self, mock_runner):
        mock_runner.return_value.run.return_value.wasSuccessful.return_value = True

        self.assertEqual(run_tests.main(["rendering", "-q"]), 0)
        mock_runner.assert_called_with(verbosity=0)
        run_tests.main(["rendering", "-v"])
        mock_runner.assert_called_with(verbosity=2)
        run_tests.main(["rendering"])
        mock_runner.assert_called_with(verbosity=1)


if __name__ == "__main__":
    unittest.main()

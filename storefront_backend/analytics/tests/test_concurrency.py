# analytics/tests/test_concurrency.py

import threading

from django.test import SimpleTestCase

from backend.concurrency import run_parallel


class RunParallelTests(SimpleTestCase):
    def test_returns_results_by_name(self):
        results = run_parallel({"a": lambda: 1, "b": lambda: 2}, parallel=True, max_workers=2)
        self.assertEqual(results, {"a": 1, "b": 2})

    def test_tasks_run_on_worker_threads(self):
        main = threading.get_ident()
        results = run_parallel({"ident": threading.get_ident}, parallel=True)
        self.assertNotEqual(results["ident"], main)

    def test_sequential_mode_runs_inline(self):
        main = threading.get_ident()
        results = run_parallel({"ident": threading.get_ident}, parallel=False)
        self.assertEqual(results["ident"], main)

    def test_failure_propagates_after_all_tasks_settle(self):
        finished = []

        def boom():
            raise ValueError("boom")

        def slow():
            finished.append("slow")
            return "done"

        with self.assertRaises(ValueError):
            run_parallel({"boom": boom, "slow": slow}, parallel=True, max_workers=2)

        self.assertEqual(finished, ["slow"])

    def test_empty_tasks(self):
        self.assertEqual(run_parallel({}), {})

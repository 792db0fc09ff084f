import unittest

from skdaemon.services.fuzzy import SubsequenceMatcher


class SubsequenceMatcherTests(unittest.TestCase):
    def setUp(self) -> None:
        self.matcher = SubsequenceMatcher()

    def test_exact_prefix_scores_highest(self) -> None:
        exact = self.matcher.weight("view", "viewDidLoad()")
        scattered = self.matcher.weight("view", "removeFromSuperview()")
        self.assertGreater(exact, scattered)
        self.assertGreater(scattered, 0.0)

    def test_missing_characters_score_zero(self) -> None:
        self.assertEqual(self.matcher.weight("xyz", "viewDidLoad()"), 0.0)

    def test_lowercase_query_is_case_insensitive(self) -> None:
        self.assertGreater(self.matcher.weight("vdl", "viewDidLoad()"), 0.01)

    def test_mixed_case_query_is_case_sensitive(self) -> None:
        self.assertEqual(self.matcher.weight("VDL", "viewDidLoad()"), 0.0)

    def test_empty_inputs(self) -> None:
        self.assertEqual(self.matcher.weight("", "anything"), 1.0)
        self.assertEqual(self.matcher.weight("a", ""), 0.0)


if __name__ == "__main__":
    unittest.main()

import unittest

from placelens.categories import (CAFE, ENTERTAINMENT, FOOD, HEALTH, OTHER, SHOPPING, TRAVEL,
                                  categorize)


class TestCategorize(unittest.TestCase):

    def test_structured_code(self):
        self.assertEqual(categorize('restaurant', None), FOOD)
        self.assertEqual(categorize('pharmacy'), HEALTH)
        self.assertEqual(categorize('hotel'), TRAVEL)

    def test_code_is_normalized(self):
        self.assertEqual(categorize('Movie Theater'), ENTERTAINMENT)
        self.assertEqual(categorize('coffee-shop'), CAFE)

    def test_unknown_code_is_other(self):
        self.assertEqual(categorize('spaceport'), OTHER)

    def test_structured_code_wins_over_text(self):
        self.assertEqual(categorize('cafe', "Tony's Pizza"), CAFE)

    def test_text_keywords(self):
        self.assertEqual(categorize(None, "Joe's Pizza Kitchen"), FOOD)
        self.assertEqual(categorize(None, "BLUE BOTTLE COFFEE"), CAFE)
        self.assertEqual(categorize(None, "Grand Central Station"), TRAVEL)

    def test_keyword_priority(self):
        # Food is checked before Cafe, Cafe before Entertainment
        self.assertEqual(categorize(None, "Pizza Cafe"), FOOD)
        self.assertEqual(categorize(None, "Espresso Bar"), CAFE)

    def test_keywords_match_whole_words(self):
        self.assertEqual(categorize(None, "Barber Shop"), SHOPPING)
        self.assertEqual(categorize(None, "Teapot Studio"), OTHER)

    def test_nothing_is_other(self):
        self.assertEqual(categorize(None, None), OTHER)
        self.assertEqual(categorize(None, ""), OTHER)
        self.assertEqual(categorize(None, "Acme Widgets"), OTHER)


if __name__ == '__main__':
    unittest.main()

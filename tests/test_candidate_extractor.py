import unittest

from mappings import DEFAULT_BLOCKLIST, DEFAULT_DIRECTORY
from ticket_parser import CandidateExtractor

from stubs import SMALL_BLOCKLIST, SMALL_DIRECTORY


def codes_of(locations):
    return [loc.code for loc in locations]


class TestCandidateExtractor(unittest.TestCase):
    def setUp(self) -> None:
        self.extractor = CandidateExtractor(SMALL_DIRECTORY, SMALL_BLOCKLIST)

    def test_every_valid_code_is_found_as_a_standalone_word(self) -> None:
        extractor = CandidateExtractor(DEFAULT_DIRECTORY, DEFAULT_BLOCKLIST)
        for code in DEFAULT_DIRECTORY:
            if code in DEFAULT_BLOCKLIST:
                continue
            found = extractor.extract(f"boarding pass {code} 12:45")
            self.assertEqual(codes_of(found), [code])
            self.assertEqual(found[0].name, DEFAULT_DIRECTORY.get(code))

    def test_blocklisted_tokens_never_become_candidates(self) -> None:
        extractor = CandidateExtractor(DEFAULT_DIRECTORY, DEFAULT_BLOCKLIST)
        for token in DEFAULT_BLOCKLIST:
            if len(token) != 3:
                continue
            text = f"{token} JFK {token}\n{token}LHR {token}"
            self.assertEqual(codes_of(extractor.extract(text)), ["JFK", "LHR"], msg=token)

    def test_directory_membership_is_required(self) -> None:
        self.assertEqual(codes_of(self.extractor.extract("ABC XYZ QQQ")), [])

    def test_blocklist_wins_over_directory(self) -> None:
        # MAR is a real airport in the small directory but also a month
        self.assertEqual(codes_of(self.extractor.extract("12 MAR 2026 TGU MIA")), ["TGU", "MIA"])

    def test_first_occurrence_order_without_duplicates(self) -> None:
        text = "MIA TGU MIA JFK TGU"
        self.assertEqual(codes_of(self.extractor.extract(text)), ["MIA", "TGU", "JFK"])

    def test_codes_glued_together_in_a_barcode_payload(self) -> None:
        payload = "M1DOE/JANE  EABC123 JFKLHRBA 0123 045Y"
        self.assertEqual(codes_of(self.extractor.extract(payload)), ["JFK", "LHR"])

    def test_blocklisted_words_do_not_leak_their_leading_letters(self) -> None:
        extractor = CandidateExtractor(DEFAULT_DIRECTORY, DEFAULT_BLOCKLIST)
        text = "BOARDING PASS\nJFK TO LHR\nFLIGHT BA 0117 12 MAR 2026\nGATE B12 SEAT 14C"
        self.assertEqual(codes_of(extractor.extract(text)), ["JFK", "LHR"])
        for word in ("SEAT", "NUMBER", "REFERENCE"):
            self.assertEqual(codes_of(extractor.extract(f"MIA TGU {word}")), ["MIA", "TGU"], msg=word)

    def test_every_long_blocklisted_word_is_skipped_whole(self) -> None:
        extractor = CandidateExtractor(DEFAULT_DIRECTORY, DEFAULT_BLOCKLIST)
        for word in DEFAULT_BLOCKLIST:
            if len(word) > 3:
                self.assertEqual(codes_of(extractor.extract(f"JFK {word} LHR {word}")), ["JFK", "LHR"], msg=word)

    def test_lowercase_text_is_ignored(self) -> None:
        self.assertEqual(self.extractor.extract("jfk to lhr"), [])

    def test_empty_text(self) -> None:
        self.assertEqual(self.extractor.extract(""), [])
        self.assertEqual(self.extractor.extract(None), [])


if __name__ == "__main__":
    unittest.main()

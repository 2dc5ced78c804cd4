from __future__ import annotations

import unittest

from scripts.lib.name_cleaner import (
    clean_and_extract_name,
    clean_mod_name,
    display_name,
    sanitize_folder_name,
)


class TestCleanAndExtractName(unittest.TestCase):
    def test_version_and_disabled_tokens(self):
        self.assertEqual(clean_and_extract_name("Raiden_Shogun_v2_DISABLED"), "raiden shogun")

    def test_bracket_groups_removed(self):
        self.assertEqual(clean_and_extract_name("[NSFW] Ellen Joe (by someone) {wip}"), "ellen joe")

    def test_separators_collapse(self):
        self.assertEqual(clean_and_extract_name("Zhu--Yuan..Outfit"), "zhu yuan outfit")

    def test_leading_letters_only(self):
        self.assertEqual(clean_and_extract_name("Nicole Demara 2nd skin"), "nicole demara")

    def test_non_letter_start_keeps_whole(self):
        self.assertEqual(clean_and_extract_name("11_Soldier"), "11 soldier")

    def test_tag_words_case_insensitive(self):
        self.assertEqual(clean_and_extract_name("Ellen_AF_nsfw_Ver3"), "ellen")

    def test_empty(self):
        self.assertEqual(clean_and_extract_name(""), "")

    def test_idempotent(self):
        samples = [
            "Raiden_Shogun_v2_DISABLED",
            "[tag]Ellen(x)Joe_v3",
            "DISABLED_Zhu-Yuan.version2",
            "11_Soldier [v2]",
            "a_(b)_[c]_v1",
            "   ",
            "Ellen(Joe)",
        ]
        for s in samples:
            once = clean_and_extract_name(s)
            self.assertEqual(clean_and_extract_name(once), once, s)


class TestDisplayNames(unittest.TestCase):
    def test_clean_mod_name_patterns(self):
        self.assertEqual(clean_mod_name("Ellen_Maid_v1.2.3"), "Ellen_Maid")
        self.assertEqual(clean_mod_name("DISABLED_Ellen"), "Ellen")
        self.assertEqual(clean_mod_name("Ellen_disabled"), "Ellen")
        self.assertEqual(clean_mod_name("Ellen (Disabled) "), "Ellen")

    def test_display_name_fallback(self):
        self.assertEqual(display_name("DISABLED_", "RawFolder"), "RawFolder")
        self.assertEqual(display_name("Maid_v2", "RawFolder"), "Maid")

    def test_sanitize_folder_name(self):
        self.assertEqual(sanitize_folder_name("  My Mod v1.2 "), "My_Mod_v1_2")
        self.assertEqual(sanitize_folder_name('Ellen "Maid"'), "Ellen_Maid")

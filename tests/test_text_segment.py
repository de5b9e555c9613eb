"""Tests for sentence segmentation and token helpers."""

from pagelens.text.segment import clean_tokens, normalize_whitespace, split_sentences, word_count


class TestSplitSentences:

    def test_splits_on_terminal_punctuation(self):
        text = "Cats purr. Dogs bark! Do birds sing? Yes."
        assert split_sentences(text) == ["Cats purr.", "Dogs bark!", "Do birds sing?", "Yes."]

    def test_collapses_whitespace_and_newlines(self):
        text = "First line\n  continues here.\n\n\tSecond   sentence."
        assert split_sentences(text) == ["First line continues here.", "Second sentence."]

    def test_text_without_punctuation_is_one_sentence(self):
        assert split_sentences("no punctuation at all") == ["no punctuation at all"]

    def test_blank_text_gives_no_sentences(self):
        assert split_sentences("") == []
        assert split_sentences("   \n\t ") == []
        assert split_sentences(None) == []

    def test_punctuation_without_following_space_does_not_split(self):
        assert split_sentences("Version 2.5 is out. Upgrade now.") == [
            "Version 2.5 is out.",
            "Upgrade now.",
        ]


class TestTokens:

    def test_clean_tokens_lowercases_and_strips_symbols(self):
        assert clean_tokens("Hello, World! It's 2024.") == ["hello", "world", "its", "2024"]

    def test_clean_tokens_drops_non_ascii_letters(self):
        assert clean_tokens("café naïve") == ["caf", "nave"]

    def test_normalize_whitespace(self):
        assert normalize_whitespace("a \n\n b\tc") == "a b c"

    def test_word_count_counts_space_pieces(self):
        assert word_count("one two three") == 3
        assert word_count("single") == 1

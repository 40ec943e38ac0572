from trendpulse.config import BIGRAM_MULT, TRIGRAM_MULT, UNIGRAM_MULT
from trendpulse.tokenizer import build_stop, extract_phrases, tokenize


def test_stop_word_only_titles_yield_nothing():
    assert tokenize("Official Teaser Trailer", "en") == []
    assert tokenize("공식 영상 속보", "ko") == []
    assert tokenize("the new update - breaking!", "ko") == []


def test_stop_list_covers_both_scripts():
    stop = build_stop("en")
    assert "official" in stop
    assert "티저" in stop


def test_first_appearance_order_and_dedupe():
    # "썰" is a single character and is dropped
    assert tokenize("소개팅 잠수 썰 소개팅", "ko") == ["소개팅", "잠수"]


def test_latin_words_lowercased_and_split_on_punctuation():
    assert tokenize("Apple Vision-Pro launch!", "en") == ["apple", "vision", "pro", "launch"]


def test_mixed_script_word_keeps_latin_piece():
    assert tokenize("BTS의 신곡", "ko") == ["bts", "신곡"]


def test_numeric_tokens_dropped_but_hangul_runs_keep_digits():
    assert tokenize("2024 2024년 결산", "ko") == ["2024년", "결산"]


def test_empty_and_none_titles():
    assert tokenize("", "ko") == []
    assert tokenize(None, "ko") == []


def test_extract_phrases_builds_ngrams_with_rising_multipliers():
    phrases = extract_phrases("소개팅 잠수 환승", "ko")
    by_phrase = {p.phrase: p.multiplier for p in phrases}
    assert by_phrase["소개팅"] == UNIGRAM_MULT
    assert by_phrase["소개팅 잠수"] == BIGRAM_MULT
    assert by_phrase["잠수 환승"] == BIGRAM_MULT
    assert by_phrase["소개팅 잠수 환승"] == TRIGRAM_MULT
    assert len(phrases) == 6
    assert UNIGRAM_MULT < BIGRAM_MULT < TRIGRAM_MULT


def test_extract_phrases_respects_length_caps():
    a, b = "a" * 14, "b" * 14
    phrases = [p.phrase for p in extract_phrases(f"{a} {b}", "en")]
    assert phrases == [a, b]

from triagebot.schemas.triage import Language
from triagebot.services import emergency_keywords as ek


def test_english_phrase_matches_case_insensitively():
    assert ek.contains_emergency_signal("Sudden CHEST PAIN since morning", Language.EN)
    assert ek.matched_keywords("Sudden CHEST PAIN since morning", "EN") == ["chest pain"]


def test_bengali_phrase_matches():
    assert ek.contains_emergency_signal("আমার বুকে ব্যথা হচ্ছে", Language.BN)


def test_no_match_for_benign_text():
    assert not ek.contains_emergency_signal("mild headache after reading", Language.EN)


def test_language_lists_are_separate():
    # English phrase in a Bengali narrative does not count
    assert not ek.contains_emergency_signal("chest pain", Language.BN)


def test_unsupported_language_and_empty_text_yield_no_match():
    assert ek.matched_keywords("chest pain", "FR") == []
    assert ek.matched_keywords("", Language.EN) == []


def test_lexicon_loaded_from_yaml():
    keywords = ek.load_keywords()
    assert "chest pain" in keywords["EN"]
    assert "জরুরি" in keywords["BN"]


def test_missing_lexicon_file_falls_back_to_defaults(monkeypatch, tmp_path):
    monkeypatch.setattr(ek, "KEYWORDS_PATH", tmp_path / "missing.yaml")
    ek.load_keywords.cache_clear()
    try:
        keywords = ek.load_keywords()
        assert keywords["EN"] == ek.DEFAULT_KEYWORDS["EN"]
    finally:
        ek.load_keywords.cache_clear()

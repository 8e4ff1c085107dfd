from __future__ import annotations

from core.name_rules import (
    DEFAULT_NAME_RULES,
    first_name_rule_match,
    is_suspicious_name,
    match_name_rules,
)


def _rule_names(name: str) -> list[str]:
    return [match.rule_name for match in match_name_rules(name)]


def test_known_examples() -> None:
    assert is_suspicious_name("User_99827")
    assert not is_suspicious_name("Oleg123")
    assert not is_suspicious_name("Bot_99")
    assert is_suspicious_name("Bot_123")
    assert is_suspicious_name("przqtx")
    assert is_suspicious_name("a1b2c3")
    assert is_suspicious_name("John_Doe_12")


def test_empty_and_short_names_are_never_suspicious() -> None:
    assert not is_suspicious_name("")
    assert not is_suspicious_name("    ")
    assert not is_suspicious_name("x")
    assert not is_suspicious_name(" 7 ")
    assert not is_suspicious_name(None)  # type: ignore[arg-type]
    assert match_name_rules("  ") == []
    assert first_name_rule_match("q") is None


def test_names_are_trimmed_before_matching() -> None:
    assert is_suspicious_name("  Bot_123  ")
    assert _rule_names("\tJohn_Doe_12\n") == ["template_agent"]


def test_digital_tail_needs_four_digits() -> None:
    assert "digital_tail" in _rule_names("abc1234")
    assert "digital_tail" in _rule_names("Oleg.2024")
    assert "digital_tail" in _rule_names("Oleg-2024")
    assert "digital_tail" not in _rule_names("Oleg12")
    assert "digital_tail" not in _rule_names("Oleg_123")


def test_consonant_run_needs_five_consonants() -> None:
    assert _rule_names("vlkshdf") == ["unreadable_consonants"]
    assert "unreadable_consonants" in _rule_names("PRZQTX")
    assert not is_suspicious_name("dfgh_user")


def test_technical_alternation_needs_three_pairs() -> None:
    assert "technical_alternation" in _rule_names("x9z8w7")
    assert not is_suspicious_name("a1b2")


def test_template_agent_requires_full_mask() -> None:
    assert _rule_names("Alex_Black_77") == ["template_agent"]
    assert "template_agent" not in _rule_names("alex_black_77")
    assert "template_agent" not in _rule_names("Alex_Black_77x")


def test_word_number_suffix() -> None:
    assert "word_number" in _rule_names("User_999")
    assert "word_number" not in _rule_names("User_99")
    assert "word_number" not in _rule_names("User_999_x")


def test_long_alphanumeric_density_only_for_long_names() -> None:
    assert _rule_names("xa1ya2za3wa4") == ["long_alphanumeric"]
    assert "long_alphanumeric" in _rule_names("123456789012")
    assert not is_suspicious_name("12345678")
    assert not is_suspicious_name("streamer_fan12")


def test_rules_overlap_and_first_match_follows_rule_order() -> None:
    assert _rule_names("User_99827") == ["digital_tail", "word_number", "long_alphanumeric"]
    first = first_name_rule_match("User_99827")
    assert first is not None
    assert first.rule_name == "digital_tail"


def test_non_latin_names_do_not_match_ascii_rules() -> None:
    assert not is_suspicious_name("Пользователь12345")
    assert not is_suspicious_name("ストリーマー")


def test_custom_rule_set() -> None:
    only_template = [rule for rule in DEFAULT_NAME_RULES if rule.name == "template_agent"]
    assert is_suspicious_name("John_Doe_12", only_template)
    assert not is_suspicious_name("Bot_123", only_template)

# tests/test_moderation.py
import pytest

from taskmarket.services.moderation import REJECTION_MESSAGE, screen_text


def test_clean_text_passes():
    result = screen_text("Pick up my coffee", "Oat milk latte from the campus cafe")
    assert result.is_allowed
    assert result.message is None


@pytest.mark.parametrize(
    "text, term",
    [
        ("Can someone WRITE MY ESSAY tonight", "write my essay"),
        ("Cash, no questions asked", "no questions asked"),
        ("need weed", "weed"),
    ],
)
def test_banned_terms_are_flagged(text, term):
    result = screen_text(text)
    assert not result.is_allowed
    assert term in result.flagged
    assert result.message == REJECTION_MESSAGE


def test_whole_words_only():
    # "skill" contains "kill", "sextant" contains "sex"
    assert screen_text("Drop off my skill-share flyers and the sextant").is_allowed


def test_flags_are_collected_across_fields_once():
    result = screen_text("steal a bike", "please steal it")
    assert result.flagged == ["steal"]

"""Unit tests for SMS reminder text."""

from waste_reminder.models.notification_preference import NotificationType
from waste_reminder.services.sms_content import (
    ENGLISH_TEMPLATES,
    POLISH_TEMPLATES,
    format_notification,
    templates_for_language,
)


def test_day_before_polish():
    text = format_notification(
        ["Plastik", "Papier"], "Gdańsk", "Długa", "2026-10-20", NotificationType.DAY_BEFORE, POLISH_TEMPLATES
    )
    assert text == "Przypomnienie: Jutro (2026-10-20) wywóz śmieci na Długa, Gdańsk: Plastik, Papier."


def test_same_day_polish():
    text = format_notification(["Szkło"], "Sopot", "Morska", "2026-10-20", NotificationType.SAME_DAY, POLISH_TEMPLATES)
    assert text == "Dzisiaj (2026-10-20) wywóz śmieci na Morska, Sopot: Szkło."


def test_phase_accepts_plain_string():
    assert format_notification(["Bio"], "Gdynia", "Świętojańska", "2026-10-20", "same_day").startswith("Today")


def test_empty_waste_types_still_formats():
    text = format_notification([], "Gdańsk", "Długa", "2026-10-20", NotificationType.DAY_BEFORE)
    assert text.endswith("Długa, Gdańsk: .")


def test_default_templates_are_english():
    text = format_notification(["Bio", "Paper"], "Warsaw", "Main St", "2025-06-01", "day_before")
    assert text == "Reminder: Tomorrow (2025-06-01) collection at Main St, Warsaw: Bio, Paper."


def test_english_templates():
    text = format_notification(
        ["Plastic"], "Gdańsk", "Długa", "2026-10-20", NotificationType.DAY_BEFORE, ENGLISH_TEMPLATES
    )
    assert text == "Reminder: Tomorrow (2026-10-20) collection at Długa, Gdańsk: Plastic."


def test_templates_for_language_falls_back_to_polish():
    assert templates_for_language("en") is ENGLISH_TEMPLATES
    assert templates_for_language(" EN ") is ENGLISH_TEMPLATES
    assert templates_for_language("pl") is POLISH_TEMPLATES
    assert templates_for_language("de") is POLISH_TEMPLATES
    assert templates_for_language(None) is POLISH_TEMPLATES

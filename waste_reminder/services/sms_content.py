"""SMS body for a collection reminder. Templates are picked by the caller; formatting never branches on locale."""

from dataclasses import dataclass

from waste_reminder.models.notification_preference import NotificationType


@dataclass(frozen=True)
class SmsTemplates:
    """Placeholders: {date}, {location} ("<street>, <city>"), {types} (comma-joined names)."""

    day_before: str
    same_day: str


POLISH_TEMPLATES = SmsTemplates(
    day_before="Przypomnienie: Jutro ({date}) wywóz śmieci na {location}: {types}.",
    same_day="Dzisiaj ({date}) wywóz śmieci na {location}: {types}.",
)

ENGLISH_TEMPLATES = SmsTemplates(
    day_before="Reminder: Tomorrow ({date}) collection at {location}: {types}.",
    same_day="Today ({date}) collection at {location}: {types}.",
)

TEMPLATES_BY_LANGUAGE = {
    "pl": POLISH_TEMPLATES,
    "en": ENGLISH_TEMPLATES,
}


def templates_for_language(language: str | None) -> SmsTemplates:
    """Templates for a user's preferred language; Polish when unknown."""
    return TEMPLATES_BY_LANGUAGE.get((language or "").strip().lower(), POLISH_TEMPLATES)


def format_notification(
    waste_type_names: list[str],
    city_name: str,
    street_name: str,
    date: str,
    phase: NotificationType | str,
    templates: SmsTemplates = ENGLISH_TEMPLATES,
) -> str:
    template = templates.day_before if NotificationType(phase) == NotificationType.DAY_BEFORE else templates.same_day
    return template.format(
        date=date,
        location=f"{street_name}, {city_name}",
        types=", ".join(waste_type_names),
    )

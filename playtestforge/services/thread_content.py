"""
Thread titles and rendered content for card and review threads.

Titles are the stable key used to find an existing thread, so they depend
only on identity and display name. Content rendering is deterministic: the
same card or review always renders the same message, which is what lets the
reconciler detect "no change".
"""

import re
from collections.abc import Sequence

from playtestforge.config import EMBED_FIELD_LIMIT
from playtestforge.models.card import Card, Faction, NoteType
from playtestforge.models.project import Project
from playtestforge.models.review import STATEMENT_QUESTIONS, Review
from playtestforge.models.thread import Embed, EmbedField, Member, MessageContent, Role

EMOJIS: dict[str, str] = {
    "unique": "<:unique:701045474332770385>",
    "military": "<:military:701045474291089460>",
    "intrigue": "<:intrigue:701045474337226813>",
    "power": "<:power:701045474433564712>",
    "Playtesting": ":dart:",
    "ChangeNotes": ":card_file_box:",
    "Implemented": ":white_check_mark:",
    "NotImplemented": ":no_entry_sign:",
    "Replaced": ":twisted_rightwards_arrows:",
    "Reworked": ":arrows_clockwise:",
    "Updated": ":arrow_double_up:",
    "Preview": ":eyes:",
    "Strongly agree": ":thumbsup::thumbsup:",
    "Somewhat agree": ":thumbsup:",
    "Neither agree nor disagree": ":fist:",
    "Somewhat disagree": ":thumbsdown:",
    "Strongly disagree": ":thumbsdown::thumbsdown:",
}

COLORS: dict[str, int] = {
    "Review": 0x660087,
    Faction.BARATHEON.value: 0xE3D852,
    Faction.GREYJOY.value: 0x1D7A99,
    Faction.LANNISTER.value: 0xC00106,
    Faction.MARTELL.value: 0xE89521,
    Faction.STARK.value: 0xCFCFCF,
    Faction.NIGHTS_WATCH.value: 0x7A7A7A,
    Faction.TARGARYEN.value: 0x1C1C1C,
    Faction.TYRELL.value: 0x509F16,
    Faction.NEUTRAL.value: 0xA99560,
}

REVIEWER_ICON = "https://cdn-icons-png.flaticon.com/128/6138/6138221.png"

_HTML_REPLACEMENTS = [
    (re.compile(r"</?i>"), "*"),
    (re.compile(r"</?b>"), "**"),
    (re.compile(r"</?em>"), "*"),
    (re.compile(r"</?s>"), "~~"),
    (re.compile(r"<cite>"), "-"),
    (re.compile(r"</cite>"), ""),
    (re.compile(r"<br>"), ""),
    (re.compile(r" {2}"), " &nbsp;"),
]

_CARD_TEMPLATES: dict[str, str] = {
    "Preview": (
        "{role} [Preview] <b>{card}</b> has been previewed for <i>{project}</i>.\n"
        "This is an early look, so share any first impressions below!"
    ),
    "Initial": (
        "{role} [Playtesting] <b>{card}</b> is ready for its first round of "
        "playtesting in <i>{project}</i>."
    ),
    "Replaced": (
        "{role} [Replaced] <b>{code}</b> has been replaced by <b>{card}</b>.\n"
        "Previous version: {previous}"
    ),
    "Reworked": (
        "{role} [Reworked] <b>{code}</b> has been reworked into <b>{card}</b>.\n"
        "Previous version: {previous}"
    ),
    "Updated": (
        "{role} [Updated] <b>{code}</b> has been updated to <b>{card}</b>.\n"
        "Previous version: {previous}"
    ),
    "Implemented": (
        "{role} [Implemented] <b>{card}</b> has been implemented for <i>{project}</i>."
    ),
    "Playtesting": (
        "{role} [Playtesting] <b>{card}</b> is currently being playtested in <i>{project}</i>."
    ),
}

_STATUS_LINE = "[{emoji}] Implementation: <i>{status}</i>"

_REVIEW_INITIAL = (
    "[Playtesting] New playtesting review by {reviewer} for <b>{card}</b> (<i>{project}</i>)."
)
_REVIEW_UPDATED = "{reviewer} has updated their review:\n{changes}"


def discordify(text: str) -> str:
    """Convert simple HTML markup to Discord markdown and fill [emoji] keys."""
    result = text
    for pattern, replacement in _HTML_REPLACEMENTS:
        result = pattern.sub(replacement, result)
    for key, emoji in EMOJIS.items():
        result = result.replace(f"[{key}]", emoji)
    return result


# --- Titles ---


def card_thread_title(card: Card) -> str:
    return f"{card.number}. {card}"


def review_thread_title(review: Review) -> str:
    return f"{review.card.number} | {review.card} - {review.reviewer}"


# --- Card Threads ---


def card_template_type(card: Card) -> str:
    """
    Pick the card thread template.

    Preview cards and the initial 1.0.0 version have their own templates;
    otherwise the pending note decides, falling back to "Playtesting" once
    the note has been cleared by finalization.
    """
    if card.is_preview:
        return "Preview"
    if card.is_initial:
        return "Initial"
    if card.note is not None:
        return card.note.type.value
    return "Playtesting"


def render_card_message(
    card: Card,
    role: Role | None,
    api_url: str,
    previous_url: str | None = None,
) -> MessageContent:
    """Render the starter message of a card thread."""
    template = _CARD_TEMPLATES[card_template_type(card)]
    status = card.implement_status
    lines = [
        template.format(
            role=f"<@&{role.id}>" if role else "",
            card=str(card),
            code=card.code,
            project=card.project.name,
            previous=previous_url or card.code,
        ).strip(),
        _STATUS_LINE.format(
            emoji="Implemented" if status.value == "Implemented" else "NotImplemented",
            status=status.value,
        ),
    ]

    embeds: list[Embed] = []
    if card.note is not None and card.note.type != NoteType.IMPLEMENTED:
        embeds.append(
            Embed(
                title=discordify("[ChangeNotes] Change Notes"),
                color=COLORS[card.faction.value],
                fields=(
                    EmbedField(
                        name=discordify(f"[{card.note.type.value}] {card.note.type.value}"),
                        value=discordify(card.note.text),
                    ),
                ),
            )
        )
    embeds.append(Embed(title=str(card), image_url=card.image_url(api_url)))

    return MessageContent(
        content=discordify("\n".join(lines)),
        embeds=tuple(embeds),
        mentions=("roles",),
    )


# --- Review Threads ---


def _decks_value(decks: Sequence[str]) -> str:
    """Deck links in rows of three."""
    parts: list[str] = []
    for index, deck in enumerate(decks, start=1):
        parts.append(f"[Deck {index}]({deck})")
        if index < len(decks):
            parts.append("\n" if index % 3 == 0 else ", ")
    return "".join(parts) or discordify("<i>None provided</i>")


def render_review_message(
    review: Review,
    project: Project,
    member: Member | None = None,
) -> MessageContent:
    """
    Render the starter message of a review thread.

    The first embed always holds the decks, games played, form link and
    statements fields in that order. Long comments move to their own embed.
    """
    reviewer = f"<@{member.id}>" if member else review.reviewer
    content = discordify(
        _REVIEW_INITIAL.format(reviewer=reviewer, card=review.card, project=project.name)
    )

    statements = "\n".join(
        f"- <b>{STATEMENT_QUESTIONS.get(key, key)}</b>: <i>{answer.value}</i> [{answer.value}]"
        for key, answer in review.statements.items()
    )
    fields = [
        EmbedField("✦ ThronesDB Deck(s)", _decks_value(review.decks), inline=True),
        EmbedField("✦ Games played", str(review.played), inline=True),
        EmbedField("✦ Submit your own!", f"[Click here]({project.form_url or ''})", inline=True),
        EmbedField("✦ Statements (agree/disagree)", discordify(statements), inline=True),
    ]

    timestamp = review.updated or review.created
    extended: Embed | None = None
    if review.additional and len(review.additional) > EMBED_FIELD_LIMIT:
        extended = Embed(
            author="✦ Additional Comments (extended)",
            color=COLORS["Review"],
            description=review.additional,
            timestamp=timestamp,
        )
    else:
        fields.append(
            EmbedField(
                "✦ Additional Comments",
                review.additional or discordify("<i>None provided</i>"),
            )
        )

    main = Embed(
        author=f"Review by {review.reviewer}",
        author_icon_url=REVIEWER_ICON,
        color=COLORS["Review"],
        fields=tuple(fields),
        timestamp=None if extended else timestamp,
    )
    embeds = (main, extended) if extended else (main,)
    return MessageContent(content=content, embeds=embeds, mentions=("users",))


def _field_value(embeds: Sequence[Embed], index: int) -> str | None:
    if not embeds or len(embeds[0].fields) <= index:
        return None
    return embeds[0].fields[index].value


def _additional_value(embeds: Sequence[Embed]) -> str | None:
    if embeds and len(embeds[0].fields) > 4:
        return embeds[0].fields[4].value
    if len(embeds) > 1:
        return embeds[1].description
    return None


def changed_review_answers(old: Sequence[Embed], new: Sequence[Embed]) -> list[str]:
    """
    List the review answers that differ between two rendered review messages.

    Relies on the field order produced by render_review_message.
    """
    changed: list[str] = []
    decks_old, decks_new = _field_value(old, 0), _field_value(new, 0)
    if decks_old != decks_new:
        changed.append(f"ThronesDB Deck(s): <i>{decks_old} -> {decks_new}</i>")
    played_old, played_new = _field_value(old, 1), _field_value(new, 1)
    if played_old != played_new:
        changed.append(f"Games Played: <i>{played_old} -> {played_new}</i>")
    if _field_value(old, 3) != _field_value(new, 3):
        changed.append("Statements (agree/disagree): <i>Adjusted</i>")
    if _additional_value(old) != _additional_value(new):
        changed.append("Additional Comments: <i>Adjusted</i>")
    return changed


def render_review_update(
    review: Review, changes: Sequence[str], member: Member | None = None
) -> MessageContent:
    """Follow-up message posted when an existing review's answers changed."""
    reviewer = f"<@{member.id}>" if member else review.reviewer
    body = "\n".join(f"- {change}" for change in changes)
    return MessageContent(
        content=discordify(_REVIEW_UPDATED.format(reviewer=reviewer, changes=body)),
        mentions=("users",),
    )

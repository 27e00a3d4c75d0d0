"""Classification of server warning messages."""

from __future__ import annotations

from collections.abc import Iterable

from my_ready.models import DEFAULT_DEPRECATION_KEYWORDS, WarningKind

# Named vocabularies, selectable from the config file with `keyword_set:`.
KEYWORD_SETS: dict[str, tuple[str, ...]] = {
    "mysql-8.0": DEFAULT_DEPRECATION_KEYWORDS,
    "mysql-9.0": DEFAULT_DEPRECATION_KEYWORDS
    + (
        "mysql_native_password",
        "default_authentication_plugin",
        "utf8mb3",
        "expire_logs_days",
    ),
}

DEFAULT_KEYWORD_SET = "mysql-8.0"


class WarningClassifier:
    """Decides whether a warning message announces a deprecation.

    A message is a deprecation when it contains any configured keyword as a
    case-insensitive substring. The keywords are plain data, so a different
    engine version only needs a different keyword list.
    """

    def __init__(self, keywords: Iterable[str] = DEFAULT_DEPRECATION_KEYWORDS):
        self.keywords = tuple(k.lower() for k in keywords if k)

    def classify(self, message: str | None) -> WarningKind:
        if not message:
            return WarningKind.GENERIC
        lowered = message.lower()
        if any(k in lowered for k in self.keywords):
            return WarningKind.DEPRECATION
        return WarningKind.GENERIC

    def is_deprecation(self, message: str | None) -> bool:
        return self.classify(message) is WarningKind.DEPRECATION

    def __repr__(self):
        return f"<WarningClassifier {len(self.keywords)} keywords>"


def classify(message: str | None, keywords: Iterable[str] = DEFAULT_DEPRECATION_KEYWORDS) -> WarningKind:
    """Classify a single message against a keyword set."""
    return WarningClassifier(keywords).classify(message)


def keyword_set(name: str) -> tuple[str, ...]:
    """Return a named keyword vocabulary. Raises KeyError for unknown names."""
    return KEYWORD_SETS[name]

"""Automatic classification of finished sessions using stored rules."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .errors import StoreError
from .models import ClassificationRule
from .stores import SessionStoreProtocol

logger = logging.getLogger(__name__)


def select_rule(
    rules: Iterable[ClassificationRule], app_name: str, window_title: str
) -> Optional[ClassificationRule]:
    """Pick the matching rule with the highest priority; newer rules win ties."""
    best: Optional[ClassificationRule] = None
    for rule in rules:
        if not rule.matches(app_name, window_title):
            continue
        if best is None or (rule.priority, rule.id) > (best.priority, best.id):
            best = rule
    return best


class RuleMatcher:
    def __init__(self, store: SessionStoreProtocol) -> None:
        self._store = store

    def match(self, app_name: str, window_title: str) -> Optional[int]:
        """Return the classification id for the session, or ``None``.

        Lookup failures are logged and reported as no match so that saving the
        session is never blocked by the rules table.
        """
        try:
            rules = self._store.rules_for_app(app_name)
        except StoreError:
            logger.exception("Failed to load classification rules for %r.", app_name)
            return None
        rule = select_rule(rules, app_name, window_title)
        if rule is None:
            return None
        logger.debug(
            "Rule %d (priority %d) matched %s - %s.",
            rule.id,
            rule.priority,
            app_name,
            window_title,
        )
        return rule.classification_id

from playtestforge.db.database import get_session, init_db
from playtestforge.db.operations import (
    ReviewMatcher,
    card_to_model,
    create_project,
    destroy_cards,
    get_project,
    load_card_history,
    project_to_model,
    read_cards,
    read_latest_cards,
    read_projects,
    read_reviews,
    update_project,
    upsert_cards,
    upsert_latest_cards,
    upsert_reviews,
)

__all__ = [
    "ReviewMatcher",
    "card_to_model",
    "create_project",
    "destroy_cards",
    "get_project",
    "get_session",
    "init_db",
    "load_card_history",
    "project_to_model",
    "read_cards",
    "read_latest_cards",
    "read_projects",
    "read_reviews",
    "update_project",
    "upsert_cards",
    "upsert_latest_cards",
    "upsert_reviews",
]

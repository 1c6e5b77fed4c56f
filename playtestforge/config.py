from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "PlaytestForge"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/playtestforge"

    # Origins allowed to call the API, e.g. the review form host
    cors_origins: list[str] = ["*"]

    # Base URL used for development card images (unreleased cards)
    api_url: str = "http://localhost:8000"

    discord_token: str = ""
    discord_guild_id: str = ""
    discord_api_url: str = "https://discord.com/api/v10"

    card_forum_name: str = "card-forum"
    review_forum_name: str = "playtesting-reviews"
    design_team_role: str = "Design Team"
    latest_tag_name: str = "Latest"

    # Upper bound on archived thread pages fetched while looking up a thread
    archived_thread_page_limit: int = 50

    github_token: str = ""
    github_owner: str = ""
    github_repository: str = ""
    github_api_url: str = "https://api.github.com"


settings = Settings()


# =============================================================================
# DISCORD LIMITS
# =============================================================================

# Maximum threads returned per archived-thread page
ARCHIVED_THREAD_PAGE_SIZE = 100

# Maximum length of an embed field value
EMBED_FIELD_LIMIT = 1024

# Release images are served from the public card CDN
RELEASE_IMAGE_BASE = "https://throneteki.ams3.cdn.digitaloceanspaces.com/packs"

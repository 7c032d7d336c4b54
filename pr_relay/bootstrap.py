"""Build and tear down the relay's runtime components from settings."""

from dataclasses import dataclass

from pr_relay.config import Settings, load_user_mappings, validate_settings
from pr_relay.coordinator import CreationClaims, ReconciliationEngine
from pr_relay.core.exceptions import ConfigurationError
from pr_relay.core.logging import get_logger
from pr_relay.services.chat.base import ChatService
from pr_relay.services.discord.client import DiscordClient
from pr_relay.services.notifications import NotificationBuilder, TemplateService, UserMapping
from pr_relay.services.slack.client import SlackClient
from pr_relay.services.state import FileStateStore, InMemoryStateStore, StateStore

logger = get_logger("bootstrap")


@dataclass
class Components:
    store: StateStore
    chat: ChatService
    engine: ReconciliationEngine
    chat_platform: str
    state_storage: str


async def build_store(config: Settings) -> StateStore:
    if config.state_storage_type == "memory":
        logger.info("Using in-memory state storage")
        return InMemoryStateStore()

    logger.info(f"Using file state storage at {config.state_file_path}")
    store = FileStateStore(config.state_file_path, flush_delay=config.state_flush_delay)
    await store.init()
    return store


def build_chat(config: Settings) -> ChatService:
    if not config.chat_token:
        raise ConfigurationError(f"No bot token configured for {config.chat_platform}")

    if config.chat_platform == "slack":
        return SlackClient(config.chat_token, config.channel_id or "")
    return DiscordClient(config.chat_token)


async def build_components(config: Settings) -> Components:
    """Wire store, chat client, notifications and engine together."""
    validate_settings(config)

    if not config.channel_id:
        raise ConfigurationError(f"No channel configured for {config.chat_platform}")

    templates = TemplateService()
    templates.load(config.templates_file)

    users = UserMapping(load_user_mappings(config.user_mappings_path))
    logger.info(f"Loaded {len(users)} user mappings")

    store = await build_store(config)
    chat = build_chat(config)

    engine = ReconciliationEngine(
        store=store,
        chat=chat,
        notifications=NotificationBuilder(templates, users),
        users=users,
        channel_id=config.channel_id,
        claims=CreationClaims(),
        creation_timeout=config.creation_wait_timeout,
    )

    return Components(
        store=store,
        chat=chat,
        engine=engine,
        chat_platform=config.chat_platform,
        state_storage=config.state_storage_type,
    )


async def shutdown_components(components: Components) -> None:
    """Close the chat client and flush the store."""
    try:
        await components.chat.close()
    except Exception as e:
        logger.error(f"Failed to close chat client: {e}")

    await components.store.close()
    logger.info("Components shut down")

"""GitHub login to chat user mapping."""

from pr_relay.core.logging import get_logger

logger = get_logger("notifications.users")


class UserMapping:
    """Resolves GitHub logins to chat user ids and mentions."""

    def __init__(self, mappings: dict[str, str] | None = None) -> None:
        self._mappings = dict(mappings or {})

    def chat_id(self, github_login: str) -> str | None:
        return self._mappings.get(github_login)

    def mention(self, github_login: str) -> str:
        """Chat mention for a login, or @login when the user is not mapped."""
        user_id = self.chat_id(github_login)
        if user_id:
            return f"<@{user_id}>"

        logger.debug(f"No chat mapping for GitHub user: {github_login}")
        return f"@{github_login}"

    def mentions(self, github_logins: list[str]) -> str:
        return ", ".join(self.mention(login) for login in github_logins)

    def has_mapping(self, github_login: str) -> bool:
        return github_login in self._mappings

    def __len__(self) -> int:
        return len(self._mappings)

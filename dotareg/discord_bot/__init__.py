from dotareg.discord_bot.api_client import ApiClient, ApiError
from dotareg.discord_bot.commands import CommandHandlers, register_commands

__all__ = ["ApiClient", "ApiError", "CommandHandlers", "register_commands"]

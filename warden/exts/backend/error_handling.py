"""Command error handling."""

from disnake.ext.commands import Cog, Context, errors
from loguru import logger

from warden.bot import WardenBot
from warden.errors import ValidationFault, capture
from warden.utils.messages import send_denial


class ErrorHandling(Cog):
    """The command error handler for the bot."""

    def __init__(self, bot: WardenBot):
        self.bot = bot

    @Cog.listener()
    async def on_command_error(self, ctx: Context, error: errors.CommandError) -> None:
        """Handles errors that occur while executing a command."""
        command = ctx.command

        if getattr(error, "handled", False):
            logger.trace(f"Command {command}'s error was already handled locally.")
            return

        debug_message = (
            f"Command {command} invoked by {ctx.message.author} with error {error.__class__.__name__}: {error}"
        )

        if isinstance(error, errors.CommandInvokeError) and isinstance(error.original, ValidationFault):
            logger.debug(debug_message)
            await send_denial(ctx, str(error.original))
        elif isinstance(error, errors.UserInputError):
            logger.debug(debug_message)
            await send_denial(ctx, f"{error}\nCheck the arguments and try again.")
        elif isinstance(error, errors.CheckFailure):
            logger.debug(debug_message)
            await send_denial(ctx, "You don't have the permissions or roles you need to do that.")
        elif isinstance(error, errors.CommandNotFound):
            logger.debug(f"Unknown command invoked by {ctx.message.author}: {ctx.message.content}")
        elif isinstance(error, errors.CommandInvokeError):
            await self.handle_unexpected_error(ctx, error.original)
        else:
            await self.handle_unexpected_error(ctx, error)

    @staticmethod
    async def handle_unexpected_error(ctx: Context, error: Exception) -> None:
        """Reports unexpected errors to operators and tells the invoker something broke."""
        capture(error, f"command {ctx.command}")

        await send_denial(
            ctx,
            f"An unexpected error occurred. Please let us know!\n```{error.__class__.__name__}: {error}```",
        )


def setup(bot: WardenBot):
    """Loads the error handling cog."""
    bot.add_cog(ErrorHandling(bot))

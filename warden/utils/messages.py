"""Utilities for Discord messages."""

import random

from disnake import Color, Embed, Message
from disnake.ext.commands import Context

NEGATIVE_REPLIES = {
    "Nope.",
    "I don't think so.",
    "Not gonna happen.",
    "Out of the question.",
    "Not likely.",
    "Certainly not.",
}


async def send_denial(ctx: Context, reason: str) -> Message:
    """Sends an embed denying the user with the given reason."""
    embed = Embed(description=reason, color=Color.red())
    embed.title = random.choice(tuple(NEGATIVE_REPLIES))

    return await ctx.send(embed=embed)


def format_user_id(user_id: int) -> str:
    """Returns a string for the user with `user_id` which has their mention and ID."""
    return f"<@{user_id}> (`{user_id}`)"

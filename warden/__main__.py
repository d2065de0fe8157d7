"""The main interface for the bot."""

from warden import constants
from warden.bot import WardenBot

instance = WardenBot.create()
instance.load_extensions()
instance.run(constants.Bot.token)

"""Custom converters for the bot."""

from datetime import timedelta

import arrow
from dateutil.relativedelta import relativedelta
from disnake.ext.commands import BadArgument, Context, Converter

from warden.moderation.models import SeverityClass
from warden.utils import time


class DurationDelta(Converter):
    """Convert duration strings into dateutil.relativedelta.relativedelta objects."""

    async def convert(self, ctx: Context, duration: str) -> relativedelta:
        """
        Converts a `duration` string to a relativedelta object.
        The converter supports the following symbols for each unit of time:
        - years: `Y`, `y`, `year`, `years`
        - months: `m`, `month`, `months`
        - weeks: `w`, `W`, `week`, `weeks`
        - days: `d`, `D`, `day`, `days`
        - hours: `H`, `h`, `hour`, `hours`
        - minutes: `M`, `minute`, `minutes`
        - seconds: `S`, `s`, `second`, `seconds`
        The units need to be provided in descending order of magnitude.
        """
        if not (delta := time.parse_duration_string(duration)):
            raise BadArgument(f"`{duration}` is not a valid duration string.")

        return delta


class Duration(DurationDelta):
    """Convert duration strings into timedelta objects measured from now."""

    async def convert(self, ctx: Context, duration: str) -> timedelta:
        """
        Converts a `duration` string to the timedelta between now and `duration` in the future.
        The converter supports the same symbols for each unit of time as its parent class.
        """
        delta = await super().convert(ctx, duration)
        now = arrow.utcnow()

        try:
            return (now + delta) - now
        except (ValueError, OverflowError) as error:
            raise BadArgument(f"`{duration}` results in a datetime outside the supported range.") from error


class Severity(Converter):
    """Convert a severity name like `low` or `HIGH` to a SeverityClass."""

    async def convert(self, ctx: Context, argument: str) -> SeverityClass:
        try:
            return SeverityClass[argument.upper()]
        except KeyError as error:
            names = ", ".join(f"`{severity.name.lower()}`" for severity in SeverityClass)
            raise BadArgument(f"`{argument}` is not a severity. Use one of {names}.") from error

"""
Notice formatting for the spam monitor.

Supported placeholders:
- {@user} - Mention of the message author
- {user_tag} - Display tag of the message author
- {server_name} - Name of the guild

Embed templates get the same substitution on their title, description,
footer text and author name.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Union

import discord

from antispam.utils.logging import get_logger, verbose_level

if TYPE_CHECKING:
    from antispam.utils.options import Template

logger = get_logger(__name__)


def _substitute(text: str, message: discord.Message) -> str:
    return (
        text.replace("{@user}", message.author.mention)
        .replace("{user_tag}", str(message.author))
        .replace("{server_name}", message.guild.name if message.guild else "")
    )


def format_notice(template: Template, message: discord.Message) -> Union[str, discord.Embed]:
    """
    Fill in the placeholders of a notice template.

    Args:
        template: Text or embed template
        message: Message that triggered the notice

    Returns:
        str or discord.Embed: The formatted notice. Embeds are copied, the
        template itself is never modified.
    """
    if isinstance(template, str):
        return _substitute(template, message)

    embed = template.copy()
    if embed.title:
        embed.title = format_notice(embed.title, message)
    if embed.description:
        embed.description = format_notice(embed.description, message)
    if embed.footer.text:
        embed.set_footer(
            text=format_notice(embed.footer.text, message),
            icon_url=embed.footer.icon_url,
        )
    if embed.author.name:
        embed.set_author(
            name=format_notice(embed.author.name, message),
            url=embed.author.url,
            icon_url=embed.author.icon_url,
        )
    return embed


async def send_notice(
    channel: Any,
    template: Template,
    message: discord.Message,
    *,
    verbose: bool = False,
) -> bool:
    """
    Send a formatted notice to a channel.

    Delivery failures are swallowed. They are logged as warnings only in
    verbose mode.

    Args:
        channel: Channel to send to
        template: Notice template; an empty template sends nothing
        message: Message that triggered the notice
        verbose: Log delivery failures at WARNING instead of DEBUG

    Returns:
        bool: True if the notice was delivered
    """
    if not template:
        return False

    notice = format_notice(template, message)
    try:
        if isinstance(notice, discord.Embed):
            await channel.send(embed=notice)
        else:
            await channel.send(notice)
        return True
    except discord.HTTPException as e:
        logger.log(
            verbose_level(verbose),
            "Could not send notice to channel %s: %s",
            getattr(channel, "id", "?"),
            e,
        )
        return False

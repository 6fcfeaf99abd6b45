"""
Cogs package for the anti-spam bot.

Contains:
- antispam: Spam monitor integration and staff commands

Each cog is loaded as a discord.py extension by the bot.
"""

"""
aigis-bot: a Bluesky conversational agent with tool use and vector memory.
"""

__version__ = "0.1.0"

"""
Deciding whether a post is talking to the agent.
"""

from ..bluesky.records import PostRecord, RecordEmbed, RecordWithMediaEmbed


class RelevanceFilter:
    """Pure predicates over a decoded post and its author."""

    def __init__(self, agent_did: str, allowed_users: list[str] | None = None):
        self.agent_did = agent_did
        self.allowed_users = list(allowed_users or [])

    def is_addressed_to_agent(self, post: PostRecord) -> bool:
        """True if the post replies to, mentions, or quotes the agent."""
        return (
            self._replies_to_agent(post)
            or self._mentions_agent(post)
            or self._quotes_agent(post)
        )

    def is_allowed(self, author_id: str) -> bool:
        """An empty allowlist lets everyone through."""
        if not self.allowed_users:
            return True
        return author_id in self.allowed_users

    def _replies_to_agent(self, post: PostRecord) -> bool:
        return post.reply is not None and self.agent_did in post.reply.parent.uri

    def _mentions_agent(self, post: PostRecord) -> bool:
        return self.agent_did in post.mentions

    def _quotes_agent(self, post: PostRecord) -> bool:
        embed = post.embed
        if isinstance(embed, RecordEmbed):
            return self.agent_did in embed.record
        if isinstance(embed, RecordWithMediaEmbed):
            return self.agent_did in embed.record.record
        return False

"""
Tests for the relevance filter.
"""

from aigis_bot.agent.relevance import RelevanceFilter
from aigis_bot.bluesky.records import (
    ImagesEmbed,
    PostRecord,
    RecordEmbed,
    RecordWithMediaEmbed,
    ReplyRef,
    StrongRef,
)

from conftest import AGENT_DID, USER_DID, post_uri


def _reply_to(uri: str) -> ReplyRef:
    root = StrongRef(uri=post_uri(USER_DID, "root"), cid="c0")
    return ReplyRef(root=root, parent=StrongRef(uri=uri, cid="c1"))


def test_plain_post_is_not_addressed():
    """Test that a post without reply, mention or quote of the agent is ignored."""
    relevance = RelevanceFilter(AGENT_DID)
    post = PostRecord(
        text="just posting",
        reply=_reply_to(post_uri(USER_DID, "other")),
        mentions=["did:plc:someoneelse"],
        embed=RecordEmbed(record=post_uri("did:plc:someoneelse", "q")),
    )

    assert relevance.is_addressed_to_agent(post) is False


def test_reply_to_agent_is_addressed():
    """Test that replying to one of the agent's posts counts."""
    relevance = RelevanceFilter(AGENT_DID)
    post = PostRecord(text="hey", reply=_reply_to(post_uri(AGENT_DID, "mine")))

    assert relevance.is_addressed_to_agent(post) is True


def test_mention_is_addressed():
    """Test that an exact mention facet counts."""
    relevance = RelevanceFilter(AGENT_DID)

    assert relevance.is_addressed_to_agent(PostRecord(text="@aigis", mentions=[AGENT_DID])) is True
    assert relevance.is_addressed_to_agent(PostRecord(text="@aigis", mentions=[AGENT_DID + "x"])) is False


def test_quote_is_addressed():
    """Test that quoting the agent, with or without media, counts."""
    relevance = RelevanceFilter(AGENT_DID)
    quoted = post_uri(AGENT_DID, "quoted")

    assert relevance.is_addressed_to_agent(PostRecord(text="lol", embed=RecordEmbed(record=quoted))) is True

    with_media = RecordWithMediaEmbed(record=RecordEmbed(record=quoted), media=[ImagesEmbed()])
    assert relevance.is_addressed_to_agent(PostRecord(text="lol", embed=with_media)) is True


def test_allowlist():
    """Test allowlist matching."""
    assert RelevanceFilter(AGENT_DID).is_allowed(USER_DID) is True

    relevance = RelevanceFilter(AGENT_DID, [USER_DID])
    assert relevance.is_allowed(USER_DID) is True
    assert relevance.is_allowed("did:plc:stranger") is False

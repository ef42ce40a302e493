"""
Bluesky record types and decoding.

Raw AT Protocol JSON (post records, thread views, Jetstream commits) is
decoded into plain dataclasses here so nothing downstream has to poke at
``$type`` strings.
"""

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Union

from ..errors import DeserializationError

POST_COLLECTION = "app.bsky.feed.post"

MENTION_FEATURE = "app.bsky.richtext.facet#mention"

EMBED_IMAGES = "app.bsky.embed.images"
EMBED_EXTERNAL = "app.bsky.embed.external"
EMBED_VIDEO = "app.bsky.embed.video"
EMBED_RECORD = "app.bsky.embed.record"
EMBED_RECORD_WITH_MEDIA = "app.bsky.embed.recordWithMedia"


@dataclass
class StrongRef:
    """A (uri, cid) pointer to a specific record version."""

    uri: str
    cid: str

    def to_dict(self) -> dict[str, str]:
        return {"uri": self.uri, "cid": self.cid}


@dataclass
class ReplyRef:
    """Reply pointers carried by a post record."""

    root: StrongRef
    parent: StrongRef

    def to_dict(self) -> dict[str, Any]:
        return {"root": self.root.to_dict(), "parent": self.parent.to_dict()}


@dataclass
class EmbedImage:
    image: str
    alt: str | None = None


@dataclass
class ImagesEmbed:
    images: list[EmbedImage] = field(default_factory=list)


@dataclass
class ExternalEmbed:
    uri: str
    title: str | None = None
    description: str | None = None


@dataclass
class VideoEmbed:
    video: str
    duration: int | None = None


@dataclass
class RecordEmbed:
    record: str
    title: str | None = None


@dataclass
class RecordWithMediaEmbed:
    record: RecordEmbed
    media: list[Union[ImagesEmbed, VideoEmbed]] = field(default_factory=list)


PostEmbed = Union[ImagesEmbed, ExternalEmbed, VideoEmbed, RecordEmbed, RecordWithMediaEmbed]


@dataclass
class PostRecord:
    """A single post, either decoded from a commit or from a thread view.

    Author fields are empty for posts decoded straight from a commit record,
    since the record itself does not carry them.
    """

    text: str
    uri: str = ""
    cid: str = ""
    author_did: str = ""
    handle: str = ""
    display_name: str | None = None
    indexed_at: str | None = None
    reply: ReplyRef | None = None
    embed: PostEmbed | None = None
    mentions: list[str] = field(default_factory=list)

    @property
    def author(self) -> str:
        """Author label in ``Name (handle)`` form, or the bare handle."""
        if self.display_name:
            return f"{self.display_name} ({self.handle})"
        return self.handle

    def to_dict(self) -> dict[str, Any]:
        return {
            "author": self.author,
            "text": self.text,
            "uri": self.uri,
            "author_did": self.author_did,
            "indexed_at": self.indexed_at,
            "embed": embed_to_dict(self.embed),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


@dataclass
class InboundEvent:
    """A post creation seen on the firehose."""

    author_id: str
    collection: str
    record_key: str
    content_id: str
    record: dict[str, Any]
    time_us: int | None = None

    @property
    def uri(self) -> str:
        return make_at_uri(self.author_id, self.collection, self.record_key)

    @property
    def ref(self) -> StrongRef:
        return StrongRef(uri=self.uri, cid=self.content_id)


def make_at_uri(did: str, collection: str, rkey: str) -> str:
    return f"at://{did}/{collection}/{rkey}"


def _blob_ref(blob: Any) -> str:
    """Pull the CID string out of a typed or legacy blob reference."""
    if not isinstance(blob, dict):
        return ""
    ref = blob.get("ref")
    if isinstance(ref, dict):
        return str(ref.get("$link", ""))
    if isinstance(ref, str):
        return ref
    return str(blob.get("cid", ""))


def _strong_ref(data: Any) -> StrongRef:
    if not isinstance(data, dict) or not isinstance(data.get("uri"), str):
        raise DeserializationError(f"Invalid strong ref: {data!r}")
    return StrongRef(uri=data["uri"], cid=str(data.get("cid", "")))


def _decode_images(data: dict[str, Any]) -> ImagesEmbed:
    images = []
    for img in data.get("images") or []:
        if isinstance(img, dict):
            images.append(EmbedImage(image=_blob_ref(img.get("image")), alt=img.get("alt")))
    return ImagesEmbed(images=images)


def _decode_media(data: Any) -> list[Union[ImagesEmbed, VideoEmbed]]:
    if not isinstance(data, dict):
        return []
    kind = data.get("$type")
    if kind == EMBED_IMAGES:
        return [_decode_images(data)]
    if kind == EMBED_VIDEO:
        return [VideoEmbed(video=_blob_ref(data.get("video")))]
    return []


def _record_uri(data: Any) -> str | None:
    if isinstance(data, dict) and isinstance(data.get("uri"), str):
        return data["uri"]
    return None


def decode_embed(data: Any) -> PostEmbed | None:
    """Decode an embed union. Unknown or malformed variants decode to None."""
    if not isinstance(data, dict):
        return None

    kind = data.get("$type")

    if kind == EMBED_IMAGES:
        return _decode_images(data)

    if kind == EMBED_EXTERNAL:
        external = data.get("external")
        if not isinstance(external, dict) or not external.get("uri"):
            return None
        return ExternalEmbed(
            uri=str(external["uri"]),
            title=external.get("title"),
            description=external.get("description"),
        )

    if kind == EMBED_VIDEO:
        return VideoEmbed(video=_blob_ref(data.get("video")))

    if kind == EMBED_RECORD:
        uri = _record_uri(data.get("record"))
        return RecordEmbed(record=uri) if uri else None

    if kind == EMBED_RECORD_WITH_MEDIA:
        # recordWithMedia nests a full app.bsky.embed.record under "record"
        inner = data.get("record")
        uri = _record_uri(inner.get("record")) if isinstance(inner, dict) else None
        if not uri:
            return None
        return RecordWithMediaEmbed(
            record=RecordEmbed(record=uri),
            media=_decode_media(data.get("media")),
        )

    return None


def _decode_mentions(facets: Any) -> list[str]:
    mentions: list[str] = []
    if not isinstance(facets, list):
        return mentions
    for facet in facets:
        if not isinstance(facet, dict):
            continue
        for feature in facet.get("features") or []:
            if (
                isinstance(feature, dict)
                and feature.get("$type") == MENTION_FEATURE
                and isinstance(feature.get("did"), str)
            ):
                mentions.append(feature["did"])
    return mentions


def decode_post_record(record: Any) -> PostRecord:
    """Decode an ``app.bsky.feed.post`` record body.

    Raises:
        DeserializationError: if the record is not a post-shaped object.
    """
    if not isinstance(record, dict):
        raise DeserializationError(f"Expected a record object, got {type(record).__name__}")

    text = record.get("text")
    if not isinstance(text, str):
        raise DeserializationError("Post record has no text")

    reply = None
    if record.get("reply") is not None:
        raw_reply = record["reply"]
        if not isinstance(raw_reply, dict):
            raise DeserializationError("Malformed reply reference")
        reply = ReplyRef(
            root=_strong_ref(raw_reply.get("root")),
            parent=_strong_ref(raw_reply.get("parent")),
        )

    return PostRecord(
        text=text,
        reply=reply,
        embed=decode_embed(record.get("embed")),
        mentions=_decode_mentions(record.get("facets")),
    )


def post_from_view(view: Any) -> PostRecord:
    """Decode an ``app.bsky.feed.defs#postView`` into a PostRecord."""
    if not isinstance(view, dict):
        raise DeserializationError("Post view is not an object")

    author = view.get("author")
    if not isinstance(author, dict):
        raise DeserializationError("Post view has no author")

    post = decode_post_record(view.get("record"))
    post.uri = str(view.get("uri", ""))
    post.cid = str(view.get("cid", ""))
    post.author_did = str(author.get("did", ""))
    post.handle = str(author.get("handle", ""))
    post.display_name = author.get("displayName") or None
    post.indexed_at = view.get("indexedAt")
    return post


def summarize_embed(embed: PostEmbed | None) -> str:
    """Short textual rendering of an embed, used to enrich embedding input."""
    if embed is None:
        return ""

    if isinstance(embed, ImagesEmbed):
        alts = [f'"{img.alt}"' if img.alt else "image" for img in embed.images]
        return f"[Images: {', '.join(alts)}]"

    if isinstance(embed, ExternalEmbed):
        summary = f"[External link: {embed.uri}]"
        if embed.title:
            summary += f' - "{embed.title}"'
        if embed.description:
            summary += f" {embed.description}"
        return summary

    if isinstance(embed, VideoEmbed):
        return "[Video]"

    if isinstance(embed, RecordEmbed):
        return f"[Quoted post: {embed.record}]"

    if isinstance(embed, RecordWithMediaEmbed):
        return f"[Quoted post with media: {embed.record.record}]"

    return ""


def embed_tags(embed: PostEmbed | None) -> list[str]:
    """Memory tags describing what kind of embed a post carries."""
    if isinstance(embed, ImagesEmbed):
        return ["has_images"]
    if isinstance(embed, ExternalEmbed):
        return ["has_external_link"]
    if isinstance(embed, VideoEmbed):
        return ["has_video"]
    if isinstance(embed, RecordEmbed):
        return ["has_quote"]
    if isinstance(embed, RecordWithMediaEmbed):
        return ["has_quote_with_media"]
    return []


def embed_to_dict(embed: PostEmbed | None) -> dict[str, Any] | None:
    if embed is None:
        return None
    return {type(embed).__name__.removesuffix("Embed"): asdict(embed)}

from dataclasses import dataclass, field, fields
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AssetType(str, Enum):
    JAVASCRIPT = "javascript"
    CSS = "css"
    XHR = "xhr"
    FONT = "font"
    IMAGE = "image"
    HTML = "html"
    VIDEO = "video"
    AUDIO = "audio"
    PIXEL = "pixel"


class Visibility(str, Enum):
    """How a real response shows up in the page's ResourceTiming entries."""
    MISSING = "missing"
    RESTRICTED = "restricted"
    VISIBLE = "visible"


@dataclass
class ResponseRecord:
    """
    One network response observed while a page was active.

    Fields:
        url              : Absolute http(s) URL of the response.
        content_length   : Body size in bytes (0 when unknown).
        content_type     : Raw Content-Type header, parameters included.
        content_encoding : Raw Content-Encoding header.
        header_size      : Length of the serialized response headers.
        asset_type       : Category from the classifier, None if unmatched.
        host             : Host (with port) taken from the URL.
        frame_depth      : Frame depth of the matched timing entry, if any.
        visibility       : Set once by the correlator.
    """
    url: str
    content_length: int = 0
    content_type: str | None = None
    content_encoding: str | None = None
    header_size: int = 0
    asset_type: AssetType | None = None
    host: str = ""
    frame_depth: int | None = None
    visibility: Visibility | None = None

    @property
    def transfer_size(self) -> int:
        return self.content_length + self.header_size

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "contentLength": self.content_length,
            "contentType": self.content_type,
            "contentEncoding": self.content_encoding,
            "headerSize": self.header_size,
            "transferSize": self.transfer_size,
            "assetType": self.asset_type.value if self.asset_type else None,
            "host": self.host,
            "frameDepth": self.frame_depth,
            "visibilityState": self.visibility.value if self.visibility else None,
        }


@dataclass
class VisibilityStats:
    total_entries: int = 0
    total_bytes: int = 0
    visible_entries: int = 0
    visible_bytes: int = 0
    no_tao_entries: int = 0
    no_tao_bytes: int = 0
    missing_entries: int = 0
    missing_bytes: int = 0

    def __add__(self, other: "VisibilityStats") -> "VisibilityStats":
        return VisibilityStats(**{
            f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)
        })

    def to_dict(self) -> dict:
        return {
            "totalEntries": self.total_entries,
            "totalBytes": self.total_bytes,
            "visibleEntries": self.visible_entries,
            "visibleBytes": self.visible_bytes,
            "noTaoEntries": self.no_tao_entries,
            "noTaoBytes": self.no_tao_bytes,
            "missingEntries": self.missing_entries,
            "missingBytes": self.missing_bytes,
        }


@dataclass
class SiteReport:
    """Visibility of one page, overall and per asset type."""
    url: str
    all: VisibilityStats
    categories: dict[AssetType, VisibilityStats] = field(default_factory=dict)
    buffer_size: int = 150
    exceeded_default_buffer: bool = False
    main_frame_entries: int = 0

    def to_dict(self) -> dict:
        out = {"url": self.url, "all": self.all.to_dict()}
        for asset_type in AssetType:
            stats = self.categories.get(asset_type, VisibilityStats())
            out[asset_type.value] = stats.to_dict()
        out["bufferSize"] = self.buffer_size
        out["exceededDefaultBuffer"] = self.exceeded_default_buffer
        out["mainFrameEntries"] = self.main_frame_entries
        return out


class TimingEntry(BaseModel):
    """A ResourceTiming entry as reported by the in-page gather script."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    initiator_type: str | None = Field(default=None, alias="initiatorType")
    transfer_size: int | None = Field(default=None, alias="transferSize")
    decoded_body_size: int | None = Field(default=None, alias="decodedBodySize")
    no_tao: bool = Field(default=False, alias="noTao")
    response_start: float | None = Field(default=None, alias="responseStart")
    frame_depth: int = Field(default=0, ge=0, alias="frameDepth")

    @model_validator(mode="after")
    def _zero_response_start_is_restricted(self):
        # browsers zero responseStart when Timing-Allow-Origin is absent
        if self.response_start == 0:
            self.no_tao = True
        return self


class PageTimingSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    entries: list[TimingEntry] = Field(default_factory=list, alias="resources")
    buffer_size: int = Field(default=150, alias="bufferSize")
    exceeded_default_buffer: bool = Field(default=False, alias="exceededDefaultBuffer")
    main_frame_entries: int = Field(default=0, ge=0, alias="mainFrameEntries")

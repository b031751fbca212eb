"""
SQLite data models (plain dataclasses) for ShopReel.
"""

from dataclasses import dataclass, field
from typing import Optional

from shopreel.core.constants import DomainStatus, VideoStatus, PublishStatus


@dataclass
class Domain:
    id: int
    url: str
    status: DomainStatus = DomainStatus.PENDING
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Product:
    id: Optional[int]                # assigned by the store on insert
    domain_id: int
    title: str
    description: str
    url: str
    images: list[str] = field(default_factory=list)
    video_status: VideoStatus = VideoStatus.UNAVAILABLE
    video_url: Optional[str] = None
    video_task_id: Optional[str] = None
    publish_status: PublishStatus = PublishStatus.NOT_PUBLISHED
    publish_id: Optional[str] = None
    publish_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def first_image(self) -> Optional[str]:
        return self.images[0] if self.images else None


@dataclass
class DomainWithProducts:
    domain: Domain
    products: list[Product] = field(default_factory=list)

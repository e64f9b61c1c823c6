"""Video data models for Vimeo API responses and inbound thumbnail requests"""

import posixpath
import re
from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator


_NUMERIC_PATTERN = re.compile(r'[0-9]*')
_IMAGE_TYPE_PATTERN = re.compile(r'[A-Za-z0-9]*')


class PictureSize(BaseModel):
    """One rendition of a video's picture"""
    width: Optional[int] = Field(None, description="Rendition width in pixels")
    height: Optional[int] = Field(None, description="Rendition height in pixels")
    link: Optional[str] = Field(None, description="Direct CDN link of the rendition")
    link_with_play_button: Optional[str] = Field(None, description="CDN link with a play button overlay")


class Pictures(BaseModel):
    """Pictures resource attached to a video"""
    uri: Optional[str] = Field(None, description="API URI of the pictures resource")
    active: bool = Field(False, description="Whether this is the active picture")
    type: Optional[str] = Field(None, description="Picture type")
    sizes: List[PictureSize] = Field(default_factory=list, description="Available renditions")
    link: Optional[str] = Field(None, description="Link to the default rendition")
    resource_key: Optional[str] = Field(None, description="Resource key")
    
    @property
    def image_id(self) -> Optional[str]:
        """Final path segment of ``uri``, the identifier of the image on the CDN"""
        if not self.uri:
            return None
        segment = posixpath.basename(self.uri.rstrip('/'))
        return segment or None


class Embed(BaseModel):
    """HTML embed code"""
    html: Optional[str] = None


class Video(BaseModel):
    """
    Video resource as returned by the Vimeo API.
    
    Requests are made with ``fields=pictures`` so usually only ``pictures``
    is populated; the remaining fields are decoded when present.
    """
    uri: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    link: Optional[str] = None
    duration: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    language: Optional[str] = None
    embed: Optional[Embed] = None
    created_time: Optional[datetime] = None
    modified_time: Optional[datetime] = None
    release_time: Optional[datetime] = None
    content_rating: List[str] = Field(default_factory=list)
    license: Optional[str] = None
    pictures: Optional[Pictures] = None
    status: Optional[str] = None
    resource_key: Optional[str] = None


class ThumbnailRequest(BaseModel):
    """Validated query parameters of a thumbnail request"""
    video_id: str = Field(..., alias="videoid", min_length=1, description="Vimeo video ID")
    image_type: str = Field("", alias="type", description="Image file extension, e.g. jpg or webp")
    max_width: str = Field("", alias="mw", description="Maximum width forwarded to the CDN")
    max_height: str = Field("", alias="mh", description="Maximum height forwarded to the CDN")
    quality: str = Field("", alias="q", description="Quality forwarded to the CDN")
    
    model_config = {
        "populate_by_name": True
    }
    
    @field_validator('max_width', 'max_height', 'quality')
    def validate_numeric(cls, v):
        """Dimensions and quality are forwarded as given, so only allow digits"""
        if not _NUMERIC_PATTERN.fullmatch(v):
            raise ValueError('must be a non-negative integer')
        return v
    
    @field_validator('image_type')
    def validate_image_type(cls, v):
        """The type lands in the CDN URL path"""
        if not _IMAGE_TYPE_PATTERN.fullmatch(v):
            raise ValueError('must be alphanumeric')
        return v

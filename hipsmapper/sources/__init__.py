"""
Calibrated source images and their collection.
"""

from .collection import BlendingPolicy, ImageSourceCollection
from .distortion import DistortionModel, distortion_for
from .image_source import ImageSource
from .metadata import (
    ImageMetadataProvider,
    MastPDSMetadata,
    MetadataError,
    PlanisphereMetadata,
    StaticMetadata,
)
from .spatial_index import SpatialIndex

__all__ = [
    'BlendingPolicy',
    'DistortionModel',
    'ImageMetadataProvider',
    'ImageSource',
    'ImageSourceCollection',
    'MastPDSMetadata',
    'MetadataError',
    'PlanisphereMetadata',
    'SpatialIndex',
    'StaticMetadata',
    'distortion_for',
]

from scope.models.image_metadata import ImageMetadata
from scope.models.public_gallery import PublicGalleryItem

__all__ = ["ImageMetadata", "PublicGalleryItem"]

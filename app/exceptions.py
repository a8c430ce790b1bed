class VisiGuardError(Exception):
    """Base class for all errors raised by the screening service."""


class CatalogError(VisiGuardError):
    pass


class VideoNotFound(CatalogError):
    def __init__(self, video_id: str):
        super().__init__(f"Video {video_id} not found")
        self.video_id = video_id


class PermissionDenied(CatalogError):
    pass


class PipelineError(VisiGuardError):
    pass


class BlobStoreError(VisiGuardError):
    pass


class MetadataStoreError(VisiGuardError):
    pass

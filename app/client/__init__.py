"""Python caller for the feed API: the client half of the post submission workflow."""

from app.client.feed_client import ApiError, FeedClient, SubmissionResult
from app.client.images import ImageCompressionError, compress_image

__all__ = ["ApiError", "FeedClient", "SubmissionResult", "ImageCompressionError", "compress_image"]

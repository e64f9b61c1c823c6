"""Custom exceptions for the Vimeo thumbnail proxy"""


class ThumbnailProxyError(Exception):
    """Base exception for the thumbnail proxy, carrying the HTTP status it maps to"""
    status_code = 500
    error = "thumbnail_proxy_error"


class MissingParameterError(ThumbnailProxyError):
    """Exception raised when a required query parameter is absent or empty"""
    status_code = 400
    error = "missing_parameter"


class InvalidParameterError(ThumbnailProxyError):
    """Exception raised when a query parameter has an unusable value"""
    status_code = 400
    error = "invalid_parameter"


class UpstreamMetadataError(ThumbnailProxyError):
    """Exception raised for Vimeo API transport, status or decode errors"""
    status_code = 502
    error = "upstream_metadata_error"


class MalformedMetadataError(UpstreamMetadataError):
    """Exception raised when the video metadata has no usable pictures URI"""
    error = "malformed_metadata"


class UpstreamImageError(ThumbnailProxyError):
    """Exception raised for CDN transport or status errors"""
    status_code = 502
    error = "upstream_image_error"


class UpstreamTimeoutError(ThumbnailProxyError):
    """Exception raised when an upstream call exceeds its deadline"""
    status_code = 504
    error = "upstream_timeout"


class StreamingError(UpstreamImageError):
    """Exception raised while copying the CDN body to the caller"""
    error = "streaming_error"


class ConfigurationError(ThumbnailProxyError):
    """Exception raised for configuration errors"""
    error = "configuration_error"

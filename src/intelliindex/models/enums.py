from enum import StrEnum


class ContentType(StrEnum):
    TEXT_PLAIN = "text/plain"
    TEXT_HTML = "text/html"
    TEXT_CSS = "text/css"
    TEXT_JAVASCRIPT = "text/javascript"
    TEXT_XML = "text/xml"
    TEXT_CSV = "text/csv"
    TEXT_MARKDOWN = "text/markdown"

    APPLICATION_JSON = "application/json"
    APPLICATION_XML = "application/xml"
    APPLICATION_PDF = "application/pdf"
    APPLICATION_ZIP = "application/zip"
    APPLICATION_FORM = "application/x-www-form-urlencoded"

    APPLICATION_WORD = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    APPLICATION_EXCEL = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    APPLICATION_POWERPOINT = "application/vnd.openxmlformats-officedocument.presentationml.presentation"

    IMAGE_JPEG = "image/jpeg"
    IMAGE_PNG = "image/png"
    IMAGE_GIF = "image/gif"
    IMAGE_SVG = "image/svg+xml"
    IMAGE_WEBP = "image/webp"

    AUDIO_MP3 = "audio/mpeg"
    AUDIO_WAV = "audio/wav"
    AUDIO_OGG = "audio/ogg"

    VIDEO_MP4 = "video/mp4"
    VIDEO_WEBM = "video/webm"
    VIDEO_OGG = "video/ogg"

    OCTET_STREAM = "application/octet-stream"

    UNKNOWN = ""

    @classmethod
    def parse(cls, mime_type: str | None) -> "ContentType | str":
        """Map a raw MIME type (possibly with parameters) onto a known content type.

        Unknown subtypes of the text, image, audio and video families are kept
        verbatim; anything else becomes UNKNOWN.
        """
        if not mime_type:
            return cls.UNKNOWN
        base = mime_type.split(";", 1)[0].strip().lower()
        try:
            return cls(base)
        except ValueError:
            pass
        if base.startswith(_GENERIC_PREFIXES):
            return base
        return cls.UNKNOWN


_GENERIC_PREFIXES = ("text/", "image/", "audio/", "video/")


class IndexStatus(StrEnum):
    CREATING = "creating"
    ACTIVE = "active"
    UPDATING = "updating"
    DELETING = "deleting"


class SearchType(StrEnum):
    SIMPLE = "simple"
    EXACT = "exact"
    FUZZY = "fuzzy"
    SEMANTIC = "semantic"


class SortOrder(StrEnum):
    ASCENDING = "asc"
    DESCENDING = "desc"


class StorageBackend(StrEnum):
    ELASTICSEARCH = "elasticsearch"
    DATABASE = "database"

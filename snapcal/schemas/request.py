"""Request-side types for the analysis pipeline.

Examples:
    >>> image = EncodedImage.from_data_url("data:image/jpeg;base64,/9j/4AAQ")
    >>> image.media_type
    'image/jpeg'
    >>> request = AnalysisRequest(image=image, credential_override="AIza...")
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from snapcal.core.cancellation import CancelToken

DATA_URL_PATTERN = re.compile(
    r"^data:(?P<media_type>image/[a-zA-Z0-9.+-]+);base64,(?P<data>[A-Za-z0-9+/=\s]*)$",
    re.DOTALL,
)


@dataclass(frozen=True)
class EncodedImage:
    """Base64-encoded image bytes with their declared media type."""

    media_type: str
    data: str

    @classmethod
    def from_data_url(cls, data_url: str) -> EncodedImage:
        """Parse a ``data:image/...;base64,...`` URL.

        Raises:
            ValueError: If the string is not a base64 image data URL.
        """
        match = DATA_URL_PATTERN.match(data_url.strip()) if isinstance(data_url, str) else None
        if match is None:
            raise ValueError("Not a base64 image data URL")
        return cls(
            media_type=match.group("media_type").lower(),
            data=re.sub(r"\s+", "", match.group("data")),
        )

    @property
    def data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.data}"


@dataclass
class AnalysisRequest:
    """One user action: a photo, an optional key override and a cancel signal.

    Attributes:
        image: Data URL string or an EncodedImage
        credential_override: Caller-supplied API key (takes precedence)
        cancel: Cancellation token observed throughout the analysis
    """

    image: EncodedImage | str
    credential_override: str | None = None
    cancel: CancelToken | None = None

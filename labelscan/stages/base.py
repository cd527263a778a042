from abc import ABC, abstractmethod

from labelscan.analysis.models import Analysis


class BaseUploader(ABC):
    """Contract for image upload adapters."""

    @abstractmethod
    async def upload(self, image: bytes) -> str:
        """Upload raw image bytes.

        Returns:
            A publicly fetchable URL of the uploaded image.

        Raises:
            StageError: on a declared error, transport failure or missing URL.
            RemoteUnavailableError: if the endpoint is not configured.
        """


class BaseTextExtractor(ABC):
    """Contract for OCR adapters."""

    @abstractmethod
    async def extract_text(self, image_url: str) -> str:
        """Return the non-empty text found in the image at ``image_url``.

        Raises:
            StageError: when no text is detected or the request fails.
            RemoteUnavailableError: if the endpoint is not configured.
        """


class BaseAnalyzer(ABC):
    """Contract for ingredient analysis adapters."""

    @abstractmethod
    async def analyze(self, text: str) -> Analysis:
        """Turn extracted label text into a structured Analysis.

        Raises:
            MalformedResponseError: if the response cannot be parsed; the raw
                text is attached.
            StageError: on any other remote failure.
            RemoteUnavailableError: if the endpoint is not configured.
        """

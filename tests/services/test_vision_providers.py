"""
Tests for the Google Vision adapter and the resilient wrapper.
"""

import json

import httpx
import pytest

from counterfeit_scan.config.settings import Settings
from counterfeit_scan.core.exceptions import VisionProviderError
from counterfeit_scan.models import Likelihood, VisionOrigin, fallback_signature
from counterfeit_scan.services.vision import (
    GoogleVisionProvider,
    ResilientVisionProvider,
    StaticVisionProvider,
    create_vision_provider,
)
from counterfeit_scan.services.vision.google import FEATURES, parse_annotate_response

ENDPOINT = "https://vision.test/v1/images:annotate"

ANNOTATION = {
    "labelAnnotations": [
        {"description": "Mobile phone", "score": 0.97},
        {"description": "Gadget", "score": 0.88},
    ],
    "logoAnnotations": [{"description": "Apple Inc.", "score": 0.91}],
    "fullTextAnnotation": {
        "text": "iPhone\nDesigned by Apple in California",
        "pages": [{"confidence": 0.93}],
    },
    "safeSearchAnnotation": {"spoof": "UNLIKELY"},
    "imagePropertiesAnnotation": {
        "dominantColors": {
            "colors": [
                {"color": {"red": 20, "green": 20, "blue": 22}, "score": 0.6, "pixelFraction": 0.45},
                {"color": {"red": 255}, "score": 0.2, "pixelFraction": 0.1},
            ]
        }
    },
}


@pytest.fixture
def image(tmp_path):
    path = tmp_path / "scan.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg")
    return str(path)


def provider_with(handler, api_key="test-key"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleVisionProvider(api_key=api_key, endpoint=ENDPOINT, timeout=5, client=client)


class TestParseAnnotateResponse:
    """Test mapping of the annotate response."""

    def test_full_response(self):
        signature = parse_annotate_response(ANNOTATION)

        assert [label.description for label in signature.labels] == ["Mobile phone", "Gadget"]
        assert signature.logos[0].description == "Apple Inc."
        assert signature.text.text.startswith("iPhone")
        assert signature.text.confidence == 0.93
        assert [c.color for c in signature.dominant_colors] == ["#141416", "#ff0000"]
        assert signature.dominant_colors[0].pixel_fraction == 0.45
        assert signature.spoof == Likelihood.UNLIKELY
        assert signature.origin == VisionOrigin.PROVIDER

    def test_empty_response(self):
        signature = parse_annotate_response({})

        assert signature.labels == []
        assert signature.text.confidence == 0.0
        assert signature.spoof == Likelihood.UNKNOWN

    def test_error_response(self):
        with pytest.raises(VisionProviderError, match="Bad image data"):
            parse_annotate_response({"error": {"code": 3, "message": "Bad image data"}})


class TestGoogleVisionProvider:
    """Test the REST round trip."""

    @pytest.mark.asyncio
    async def test_analyze(self, image):
        seen = {}

        def handler(request):
            seen["key"] = request.url.params["key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"responses": [ANNOTATION]})

        signature = await provider_with(handler).analyze(image)

        assert seen["key"] == "test-key"
        assert seen["body"]["requests"][0]["features"] == FEATURES
        assert seen["body"]["requests"][0]["image"]["content"]
        assert signature.logos[0].score == 0.91

    @pytest.mark.asyncio
    async def test_missing_api_key(self, image):
        provider = GoogleVisionProvider(api_key="", endpoint=ENDPOINT)
        provider.api_key = None

        with pytest.raises(VisionProviderError, match="not configured"):
            await provider.analyze(image)

    @pytest.mark.asyncio
    async def test_http_error_status(self, image):
        provider = provider_with(lambda request: httpx.Response(503, json={}))

        with pytest.raises(VisionProviderError, match="HTTP 503"):
            await provider.analyze(image)

    @pytest.mark.asyncio
    async def test_timeout(self, image):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(VisionProviderError, match="timed out"):
            await provider_with(handler).analyze(image)

    @pytest.mark.asyncio
    async def test_unreadable_image(self, tmp_path):
        provider = provider_with(lambda request: httpx.Response(200, json={"responses": [ANNOTATION]}))

        with pytest.raises(VisionProviderError, match="Cannot read image"):
            await provider.analyze(str(tmp_path / "missing.jpg"))


class TestResilientVisionProvider:
    """Test fallback on provider failure."""

    @pytest.mark.asyncio
    async def test_failure_yields_fallback(self, image):
        provider = ResilientVisionProvider(provider_with(lambda request: httpx.Response(500, json={})))

        signature = await provider.analyze(image)

        assert signature.origin == VisionOrigin.FALLBACK
        assert signature.labels == []
        assert signature.text.confidence == 0.0
        assert signature.spoof == Likelihood.UNKNOWN

    @pytest.mark.asyncio
    async def test_success_is_tagged_provider(self, make_signature):
        static = StaticVisionProvider(make_signature(labels=[("Book", 0.9)]))

        signature = await ResilientVisionProvider(static).analyze("/uploads/book.jpg")

        assert signature.origin == VisionOrigin.PROVIDER
        assert static.analyzed_paths == ["/uploads/book.jpg"]

    @pytest.mark.asyncio
    async def test_factory_without_key_falls_back(self, image):
        provider = create_vision_provider(Settings(_env_file=None, google_vision_api_key=None))

        signature = await provider.analyze(image)

        assert isinstance(provider, ResilientVisionProvider)
        assert signature.is_fallback is True

    @pytest.mark.asyncio
    async def test_inner_fallback_is_preserved(self, image):
        failing = ResilientVisionProvider(provider_with(lambda request: httpx.Response(500, json={})))
        nested = ResilientVisionProvider(failing)
        seeded = ResilientVisionProvider(StaticVisionProvider(fallback_signature()))

        assert (await nested.analyze(image)).origin == VisionOrigin.FALLBACK
        assert (await seeded.analyze(image)).is_fallback is True

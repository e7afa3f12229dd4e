"""
Tests for the evaluation engine and the risk to status mapping.
"""

from unittest.mock import AsyncMock

import pytest

from counterfeit_scan.models import (
    EvaluationMode,
    Likelihood,
    ProductProfile,
    ReferenceFingerprint,
    ReviewVerdict,
    RuleConfiguration,
    ScanStatus,
    ViolationCode,
    clamp_score,
    fallback_signature,
    map_risk_to_status,
)
from counterfeit_scan.services.evaluation_engine import EvaluationEngine
from counterfeit_scan.services.reference_comparator import fingerprint_from_signature
from counterfeit_scan.services.training_service import TrainingAdjuster, TrainingRecord


@pytest.fixture
def engine():
    return EvaluationEngine(training=TrainingAdjuster(min_records=5, adjustment_points=10))


@pytest.fixture
def iphone():
    return ProductProfile(
        id="product-iphone",
        tenant_id="tenant-1",
        brand="Apple",
        category="Smartphones",
        product_name="iPhone 13 Pro",
        rules=RuleConfiguration()
    )


@pytest.fixture
def book():
    return ProductProfile(
        id="product-book",
        tenant_id="tenant-1",
        brand="Penguin",
        category="Books",
        product_name="The Silent River",
        rules=RuleConfiguration()
    )


@pytest.fixture
def references():
    source = AsyncMock()
    source.get_fingerprint.return_value = None
    source.list_active_fingerprints.return_value = []
    return source


def weights_of(result, code):
    return [v.weight for v in result.find(code)]


class TestRiskMapping:
    """Test score clamping and the canonical status thresholds."""

    @pytest.mark.parametrize("raw, expected", [(-45, 0), (0, 0), (55.4, 55), (100, 100), (260, 100)])
    def test_clamp_score(self, raw, expected):
        assert clamp_score(raw) == expected

    @pytest.mark.parametrize("score, status", [
        (0, ScanStatus.LIKELY_GENUINE),
        (30, ScanStatus.LIKELY_GENUINE),
        (31, ScanStatus.SUSPICIOUS),
        (60, ScanStatus.SUSPICIOUS),
        (61, ScanStatus.HIGH_RISK),
        (100, ScanStatus.HIGH_RISK),
    ])
    def test_status_thresholds(self, score, status):
        assert map_risk_to_status(score) == status

    def test_every_score_has_a_status(self):
        statuses = {map_risk_to_status(score) for score in range(0, 101)}

        assert statuses == {ScanStatus.LIKELY_GENUINE, ScanStatus.SUSPICIOUS, ScanStatus.HIGH_RISK}


class TestUndefinedCategory:
    """Test products without rule configuration."""

    @pytest.mark.asyncio
    async def test_clean_scan_is_indeterminate(self, engine, make_signature):
        product = ProductProfile(id="product-1", brand="Acme", category="Other")

        result = await engine.evaluate(product, make_signature(labels=[("Box", 0.9)], text="Acme widget"))

        assert result.used_mode == EvaluationMode.UNDEFINED_CATEGORY
        assert result.status == ScanStatus.INDETERMINATE
        assert result.risk_score == 0
        assert result.codes() == [ViolationCode.NO_RULES_DEFINED]

    @pytest.mark.asyncio
    async def test_universal_checks_still_score(self, engine, make_signature):
        product = ProductProfile(id="product-1", brand="Acme", category="Other")
        signature = make_signature(text="Image from www.stockphotos.example", spoof=Likelihood.LIKELY)

        result = await engine.evaluate(product, signature)

        assert result.status == ScanStatus.INDETERMINATE
        assert result.codes() == [
            ViolationCode.NO_RULES_DEFINED,
            ViolationCode.WATERMARK_DETECTED,
            ViolationCode.SPOOF_DETECTED,
        ]
        assert result.risk_score == 100


class TestMasterPlusCloud:
    """Test rule-driven evaluation without a selected reference."""

    @pytest.mark.asyncio
    async def test_apple_smartphone_without_logo(self, engine, iphone, make_signature):
        signature = make_signature(labels=[("Mobile phone", 0.95)], text="iPhone 13 Pro", text_confidence=0.9)

        result = await engine.evaluate(iphone, signature)

        assert result.used_mode == EvaluationMode.MASTER_PLUS_CLOUD
        assert result.risk_score >= 75
        assert result.status == ScanStatus.HIGH_RISK
        assert weights_of(result, ViolationCode.CATEGORY_BASELINE) == [25]
        assert weights_of(result, ViolationCode.LOGO_MISSING) == [35]
        assert weights_of(result, ViolationCode.APPLE_LOGO_MISSING) == [15]

    @pytest.mark.asyncio
    async def test_dark_device_challenge(self, engine, iphone, make_signature):
        signature = make_signature(
            labels=[("Mobile phone", 0.95)],
            text="iPhone 13 Pro",
            colors=[("#111111", 0.9, 0.6)]
        )

        result = await engine.evaluate(iphone, signature)

        assert weights_of(result, ViolationCode.DETECTION_CHALLENGE) == [-10]
        assert result.risk_score == 65

    @pytest.mark.asyncio
    async def test_score_clamped_at_100(self, engine, iphone, make_signature):
        signature = make_signature(
            labels=[("iPhone", 0.9), ("Android device", 0.8)],
            text="www.fakes.example.com/ 100% orignal Appel",
            text_confidence=0.3,
            spoof=Likelihood.VERY_LIKELY
        )

        result = await engine.evaluate(iphone, signature)

        assert result.risk_score == 100
        assert result.status == ScanStatus.HIGH_RISK
        assert len(result.find(ViolationCode.WATERMARK_DETECTED)) == 1

    @pytest.mark.asyncio
    async def test_category_mismatch(self, engine, make_signature):
        product = ProductProfile(
            id="product-phone",
            brand="Google",
            category="Smartphones",
            rules=RuleConfiguration(),
            weights={"category_mismatch": 5}
        )
        signature = make_signature(labels=[("Shoe", 0.9)], logos=[("Google", 0.95)])

        result = await engine.evaluate(product, signature)

        assert weights_of(result, ViolationCode.CATEGORY_MISMATCH) == [5]
        assert result.debug_info["category_match"]["is_match"] is False

    @pytest.mark.asyncio
    async def test_fallback_signature_skips_label_checks(self, engine, book):
        result = await engine.evaluate(book, fallback_signature())

        assert ViolationCode.CATEGORY_MISMATCH not in result.codes()
        assert result.debug_info["vision_origin"] == "FALLBACK"

    @pytest.mark.asyncio
    async def test_brand_mismatch(self, engine, iphone, make_signature):
        signature = make_signature(labels=[("Mobile phone", 0.9)], logos=[("Apple", 0.95)], text="Brand: Samsung")

        result = await engine.evaluate(iphone, signature)

        assert weights_of(result, ViolationCode.BRAND_MISMATCH) == [20]
        assert result.debug_info["parsed_identifiers"]["brand_name"] == "Samsung"

    @pytest.mark.asyncio
    async def test_required_and_invalid_identifiers(self, engine, make_signature):
        product = ProductProfile(
            id="product-book",
            brand="Penguin",
            category="Books",
            rules=RuleConfiguration(
                required_identifiers=["isbn", "publisher"],
                identifier_patterns={"isbn": r"^97[89]\d{10}$"}
            ),
            weights={"missing_publisher": 25}
        )
        signature = make_signature(labels=[("Book", 0.9)], text="ISBN 0-306-40615-2")

        result = await engine.evaluate(product, signature)

        missing = result.find(ViolationCode.MISSING_IDENTIFIER)
        assert [(v.identifier, v.weight) for v in missing] == [("publisher", 25)]
        invalid = result.find(ViolationCode.INVALID_IDENTIFIER)
        assert [(v.identifier, v.weight) for v in invalid] == [("isbn", 40)]
        assert result.risk_score == 75

    @pytest.mark.asyncio
    async def test_malformed_pattern_is_recorded(self, engine, make_signature):
        product = ProductProfile(
            id="product-book",
            brand="Penguin",
            category="Books",
            rules=RuleConfiguration(identifier_patterns={"isbn": "[unclosed"})
        )
        signature = make_signature(labels=[("Book", 0.9)], text="ISBN 978-3-16-148410-0")

        result = await engine.evaluate(product, signature)

        assert weights_of(result, ViolationCode.IDENTIFIER_PATTERN_ERROR) == [0]
        assert ViolationCode.INVALID_IDENTIFIER not in result.codes()

    @pytest.mark.asyncio
    async def test_logo_rule_low_confidence(self, engine, make_signature):
        product = ProductProfile(
            id="product-sneaker",
            brand="Nike",
            category="Sneakers",
            rules=RuleConfiguration(use_logo_check=True),
            weights={"logo_low_confidence": 15}
        )
        signature = make_signature(labels=[("Sneaker", 0.9)], logos=[("Nike", 0.6)])

        result = await engine.evaluate(product, signature)

        assert weights_of(result, ViolationCode.EXPECTED_LOGO_LOW_CONFIDENCE) == [15]

    @pytest.mark.asyncio
    async def test_books_without_logo_get_challenge_relief(self, engine, make_signature):
        product = ProductProfile(
            id="product-book",
            brand="Penguin",
            category="Books",
            rules=RuleConfiguration(use_logo_check=True)
        )
        signature = make_signature(labels=[("Book", 0.9)], text="The Silent River")

        result = await engine.evaluate(product, signature)

        assert weights_of(result, ViolationCode.EXPECTED_LOGO_MISSING) == [35]
        assert weights_of(result, ViolationCode.DETECTION_CHALLENGE) == [-20]
        assert result.risk_score == 25

    @pytest.mark.asyncio
    async def test_auto_reference_without_references(self, engine, book, references, make_signature):
        product = book.model_copy(update={"rules": RuleConfiguration(use_reference_match=True)})

        result = await engine.evaluate(product, make_signature(labels=[("Book", 0.9)]), references=references)

        references.list_active_fingerprints.assert_awaited_once_with("product-book")
        assert weights_of(result, ViolationCode.NO_REFERENCE_AVAILABLE) == [10]

    @pytest.mark.asyncio
    async def test_auto_reference_best_match(self, engine, book, references, make_signature):
        product = book.model_copy(update={"rules": RuleConfiguration(use_reference_match=True)})
        signature = make_signature(labels=[("Book", 0.9)], text="The Silent River", colors=[("#f0e6d2", 0.6, 1.0)])
        references.list_active_fingerprints.return_value = [
            fingerprint_from_signature(signature, reference_id="ref-cover")
        ]

        result = await engine.evaluate(product, signature, references=references)

        assert weights_of(result, ViolationCode.HIGH_SIMILARITY) == [-30]
        assert result.debug_info["reference_comparison"]["reference_id"] == "ref-cover"
        assert result.risk_score == 0

    @pytest.mark.asyncio
    async def test_training_adjustment(self, engine, iphone, make_signature):
        records = (
            [TrainingRecord(risk_score=s, status=ScanStatus.LIKELY_GENUINE) for s in (10, 15, 20)]
            + [TrainingRecord(risk_score=s, status=ScanStatus.LIKELY_GENUINE, user_override=ReviewVerdict.FAKE)
               for s in (80, 90)]
        )
        signature = make_signature(labels=[("Mobile phone", 0.95)], text="iPhone 13 Pro")

        result = await engine.evaluate(iphone, signature, training_records=records)

        assert weights_of(result, ViolationCode.TRAINING_ADJUSTMENT) == [10]
        assert result.risk_score == 85

    @pytest.mark.asyncio
    async def test_no_training_adjustment_without_data(self, engine, iphone, make_signature):
        result = await engine.evaluate(iphone, make_signature(labels=[("Mobile phone", 0.95)]))

        assert ViolationCode.TRAINING_ADJUSTMENT not in result.codes()
        assert result.debug_info["training"]["reason"] == "Insufficient training data"


class TestReferenceCompare:
    """Test evaluation against a selected reference image."""

    @pytest.mark.asyncio
    async def test_high_similarity_clamps_at_zero(self, engine, book, references, make_signature):
        signature = make_signature(labels=[("Book", 0.9)], text="Penguin Classics", colors=[("#f0e6d2", 0.5, 1.0)])
        references.get_fingerprint.return_value = fingerprint_from_signature(signature, reference_id="ref-1")

        result = await engine.evaluate(book, signature, reference_id="ref-1", references=references)

        assert result.used_mode == EvaluationMode.REFERENCE_COMPARE
        assert weights_of(result, ViolationCode.HIGH_SIMILARITY) == [-30]
        assert result.risk_score == 0
        assert result.status == ScanStatus.LIKELY_GENUINE
        assert result.debug_info["reference_comparison"]["confidence"] == "HIGH"

    @pytest.mark.asyncio
    async def test_reference_not_found(self, engine, book, references, make_signature):
        result = await engine.evaluate(
            book, make_signature(labels=[("Book", 0.9)]), reference_id="missing", references=references
        )

        assert weights_of(result, ViolationCode.REFERENCE_NOT_FOUND) == [0]
        assert result.risk_score == 10

    @pytest.mark.asyncio
    async def test_reference_without_fingerprint(self, engine, book, references, make_signature):
        references.get_fingerprint.return_value = ReferenceFingerprint(reference_id="ref-empty")

        result = await engine.evaluate(
            book, make_signature(labels=[("Book", 0.9)]), reference_id="ref-empty", references=references
        )

        assert weights_of(result, ViolationCode.NO_REFERENCE_AVAILABLE) == [10]

    @pytest.mark.asyncio
    async def test_reference_error(self, engine, book, references, make_signature):
        references.get_fingerprint.side_effect = RuntimeError("storage offline")

        result = await engine.evaluate(
            book, make_signature(labels=[("Book", 0.9)]), reference_id="ref-1", references=references
        )

        errors = result.find(ViolationCode.REFERENCE_ERROR)
        assert [v.weight for v in errors] == [0]
        assert errors[0].details["error"] == "storage offline"

    @pytest.mark.asyncio
    async def test_low_similarity_uses_product_weight(self, engine, references, make_signature):
        product = ProductProfile(
            id="product-book",
            brand="Penguin",
            category="Books",
            rules=RuleConfiguration(),
            weights={"low_similarity": 55}
        )
        references.get_fingerprint.return_value = ReferenceFingerprint(
            reference_id="ref-1",
            text=make_signature(text="Completely different cover").text
        )
        signature = make_signature(labels=[("Book", 0.9)], text="Penguin Classics")

        result = await engine.evaluate(product, signature, reference_id="ref-1", references=references)

        assert weights_of(result, ViolationCode.LOW_SIMILARITY) == [55]

    @pytest.mark.asyncio
    async def test_generic_brand_check(self, engine, iphone, references, make_signature):
        signature = make_signature(labels=[("Mobile phone", 0.9)], logos=[("Apple", 0.95)], text="Brand: Xiaomi")

        result = await engine.evaluate(iphone, signature, reference_id="missing", references=references)

        assert ViolationCode.BRAND_MISMATCH in result.codes()

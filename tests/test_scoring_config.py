"""Tests for scoring configuration validation and storage."""

from dataclasses import replace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.crud import scoring_config as scoring_config_crud
from src.models.scoring_config import GLOBAL_SCOPE
from src.services.errors import ConfigurationValidationError
from src.services.scoring import (
    ScoringAlgorithm,
    ScoringCategory,
    ScoringConfig,
    ScoringEngine,
    ScoringFactor,
    ScoringThresholds,
)


def two_factors(first_weight: float = 60, second_weight: float = 40) -> tuple[ScoringFactor, ...]:
    return (
        ScoringFactor(name="budget_alignment", weight=first_weight, category=ScoringCategory.FINANCIAL),
        ScoringFactor(name="source_quality", weight=second_weight, category=ScoringCategory.SOURCE),
    )


class TestScoringConfigValidation:
    """Tests for ScoringConfig.validate."""

    def test_default_config_is_valid(self) -> None:
        config = ScoringConfig()
        report = config.validate()

        assert report.valid is True
        assert report.errors == []
        assert config.total_weight == 100
        assert len(config.factors) == 9

    def test_weights_must_total_100(self) -> None:
        report = ScoringConfig(factors=two_factors(55, 40)).validate()

        assert report.valid is False
        assert "Total factor weights must equal 100, got 95" in report.errors

    def test_thresholds_must_be_strictly_descending(self) -> None:
        config = ScoringConfig(thresholds=ScoringThresholds(hot=60, warm=60, cold=70))
        report = config.validate()

        assert "Hot threshold must be greater than warm threshold" in report.errors
        assert "Warm threshold must be greater than cold threshold" in report.errors

    def test_duplicate_factor_names(self) -> None:
        factors = (
            ScoringFactor(name="source_quality", weight=50, category=ScoringCategory.SOURCE),
            ScoringFactor(name="source_quality", weight=50, category=ScoringCategory.SOURCE),
        )
        report = ScoringConfig(factors=factors).validate()

        assert "Duplicate factor names: source_quality" in report.errors

    def test_unknown_factor_name(self) -> None:
        factors = (
            ScoringFactor(name="zodiac_sign", weight=50, category=ScoringCategory.DEMOGRAPHIC),
            ScoringFactor(name="source_quality", weight=50, category=ScoringCategory.SOURCE),
        )
        report = ScoringConfig(factors=factors).validate()

        assert "Unknown scoring factor: zodiac_sign" in report.errors

    def test_value_range_checks(self) -> None:
        factors = (
            ScoringFactor(
                name="budget_alignment",
                weight=60,
                category=ScoringCategory.FINANCIAL,
                min_value=-5,
            ),
            ScoringFactor(
                name="source_quality",
                weight=40,
                category=ScoringCategory.SOURCE,
                min_value=50,
                max_value=50,
            ),
        )
        report = ScoringConfig(factors=factors).validate()

        assert "Factor budget_alignment min value must not be negative" in report.errors
        assert "Factor source_quality max value must be greater than min value" in report.errors

    def test_only_weighted_algorithm_supported(self) -> None:
        report = ScoringConfig(algorithm=ScoringAlgorithm.ML).validate()

        assert "Scoring algorithm 'ml' is not supported, use 'weighted'" in report.errors

    def test_zero_weight_is_a_warning(self) -> None:
        factors = two_factors(100, 0)
        report = ScoringConfig(factors=factors).validate()

        assert report.valid is True
        assert report.warnings == ["Factor source_quality has zero weight"]


class TestScoringConfigMerge:
    """Tests for ScoringConfig.merge."""

    def test_thresholds_merged_key_by_key(self) -> None:
        merged = ScoringConfig().merge({"thresholds": {"hot": 85}})

        assert merged.thresholds == ScoringThresholds(hot=85, warm=60, cold=40)

    def test_factors_replaced_as_a_whole(self) -> None:
        merged = ScoringConfig().merge({"factors": [f.to_dict() for f in two_factors()]})

        assert [f.name for f in merged.factors] == ["budget_alignment", "source_quality"]

    def test_merge_does_not_mutate_original(self) -> None:
        original = ScoringConfig()
        original.merge({"min_score": 10, "algorithm": "hybrid"})

        assert original.min_score == 0
        assert original.algorithm == ScoringAlgorithm.WEIGHTED

    def test_round_trip_through_dict(self) -> None:
        config = replace(ScoringConfig(factors=two_factors()), max_score=50)

        assert ScoringConfig.from_dict(config.to_dict()) == config


class TestScoringConfigStore:
    """Tests for loading and updating stored configurations."""

    @pytest.mark.asyncio
    async def test_global_config_created_lazily(
        self, db_session: AsyncSession, scoring_engine: ScoringEngine
    ) -> None:
        assert await scoring_config_crud.get_by_scope(db_session, scope=GLOBAL_SCOPE) is None

        config = await scoring_engine.get_config(db_session)

        record = await scoring_config_crud.get_by_scope(db_session, scope=GLOBAL_SCOPE)
        assert record is not None
        assert record.version == 1
        assert config == scoring_engine.default_config()

    @pytest.mark.asyncio
    async def test_update_merges_and_bumps_version(
        self, db_session: AsyncSession, scoring_engine: ScoringEngine
    ) -> None:
        updated = await scoring_engine.update_config(
            db_session, {"thresholds": {"hot": 85}}, updated_by="admin"
        )

        assert updated.thresholds.hot == 85
        assert (await scoring_engine.get_config(db_session)).thresholds.hot == 85
        record = await scoring_config_crud.get_by_scope(db_session, scope=GLOBAL_SCOPE)
        assert record.version == 2
        assert record.updated_by == "admin"

    @pytest.mark.asyncio
    async def test_rejected_update_keeps_old_config(
        self, db_session: AsyncSession, scoring_engine: ScoringEngine
    ) -> None:
        await scoring_engine.update_config(db_session, {"thresholds": {"hot": 85}})

        with pytest.raises(ConfigurationValidationError) as exc_info:
            await scoring_engine.update_config(
                db_session, {"factors": [f.to_dict() for f in two_factors(55, 40)]}
            )

        assert exc_info.value.errors == ["Total factor weights must equal 100, got 95"]
        assert "got 95" in exc_info.value.reason
        config = await scoring_engine.get_config(db_session)
        assert config.thresholds.hot == 85
        assert len(config.factors) == 9
        record = await scoring_config_crud.get_by_scope(db_session, scope=GLOBAL_SCOPE)
        assert record.version == 2

    @pytest.mark.asyncio
    async def test_threshold_update_violating_order_rejected(
        self, db_session: AsyncSession, scoring_engine: ScoringEngine
    ) -> None:
        with pytest.raises(ConfigurationValidationError, match="Hot threshold"):
            await scoring_engine.update_config(db_session, {"thresholds": {"hot": 50}})

    @pytest.mark.asyncio
    async def test_tenant_config_overrides_global(
        self, db_session: AsyncSession, scoring_engine: ScoringEngine
    ) -> None:
        await scoring_engine.update_config(
            db_session,
            {"factors": [f.to_dict() for f in two_factors()]},
            tenant_id="tenant-a",
        )

        tenant_config = await scoring_engine.get_config(db_session, "tenant-a")
        other_config = await scoring_engine.get_config(db_session, "tenant-b")

        assert len(tenant_config.factors) == 2
        assert len(other_config.factors) == 9

    @pytest.mark.asyncio
    async def test_get_category_uses_stored_thresholds(
        self, db_session: AsyncSession, scoring_engine: ScoringEngine
    ) -> None:
        await scoring_engine.update_config(db_session, {"thresholds": {"hot": 90, "warm": 70}})

        assert (await scoring_engine.get_category(db_session, 85)).value == "warm"
        assert (await scoring_engine.get_category(db_session, 90)).value == "hot"
        assert (await scoring_engine.get_category(db_session, 69.9)).value == "cold"

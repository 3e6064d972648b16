"""Tests for compatibility validation and transformation tests."""

from __future__ import annotations

import pytest


def _validate(target, samples):
    from contracthub.core.versioning.compatibility import CompatibilityValidator

    return CompatibilityValidator().validate(target, samples)


def _types(report):
    return [(issue.type.value, issue.severity.value) for issue in report.issues]


class TestCompatibilityValidator:
    """Tests for CompatibilityValidator.validate."""

    def test_clean_sample_is_compatible(self):
        report = _validate("2.0", [{"id": "1", "name": "Acme"}])

        assert report.compatible is True
        assert report.issues == []
        assert report.samples_checked == 1

    def test_empty_samples(self):
        report = _validate("1.1", [])

        assert report.compatible is True
        assert report.samples_checked == 0

    def test_unknown_target_raises(self):
        from contracthub.core.versioning.exceptions import InvalidVersionError

        with pytest.raises(InvalidVersionError) as exc_info:
            _validate("3.0", [{"id": "1"}])

        assert exc_info.value.supported == ["1.0", "1.1", "2.0"]

    def test_non_record_sample_is_high(self):
        report = _validate("2.0", ["just a string"])

        assert _types(report) == [("type_mismatch", "high")]
        assert report.compatible is False
        assert report.issues[0].sample_index == 0

    def test_missing_id_is_high(self):
        report = _validate("1.1", [{"name": "no id"}])

        assert ("missing_field", "high") in _types(report)
        assert report.compatible is False

    def test_wrong_id_type_is_high(self):
        report = _validate("1.1", [{"id": ["x"], "name": "a"}])

        assert ("type_mismatch", "high") in _types(report)

    def test_integer_id_accepted(self):
        report = _validate("1.1", [{"id": 12, "name": "a"}])

        assert report.issues == []

    def test_wrong_name_type_is_medium(self):
        report = _validate("1.1", [{"id": "1", "name": 5}])

        assert _types(report) == [("type_mismatch", "medium")]
        assert report.compatible is True

    def test_downshaping_reports_data_loss(self):
        report = _validate("1.0", [{"id": "1", "enhanced_analytics": {"views": 5}}])

        issue = report.issues[0]
        assert issue.type.value == "data_loss"
        assert issue.severity.value == "medium"
        assert issue.affected_fields == ["enhanced_analytics"]
        assert report.compatible is True

    def test_none_valued_fields_are_not_data_loss(self):
        report = _validate("1.0", [{"id": "1", "metadata": None}])

        assert report.issues == []

    def test_pagination_rename_is_low(self):
        report = _validate("1.0", [{"id": "1", "pagination": {"current_page": 2, "total_items": 9}}])

        issue = report.issues[0]
        assert (issue.type.value, issue.severity.value) == ("format_change", "low")
        assert issue.affected_fields == ["pagination.current_page", "pagination.total_items"]

    def test_non_record_pagination_is_medium(self):
        report = _validate("2.0", [{"id": "1", "pagination": [1, 2]}])

        assert ("type_mismatch", "medium") in _types(report)

    def test_numeric_dates_flagged(self):
        report = _validate("1.1", [{"id": "1", "created_at": 1700000000}])

        assert _types(report) == [("format_change", "low")]

    def test_issues_carry_sample_index(self):
        report = _validate("1.1", [{"id": "1"}, {"name": "second"}])

        assert report.samples_checked == 2
        assert {issue.sample_index for issue in report.issues} == {1}

    def test_to_dict(self):
        report = _validate("2.0", [{"name": "a"}])
        data = report.to_dict()

        assert data["target_version"] == "2.0"
        assert data["compatible"] is False
        assert data["issues"][0]["affected_fields"] == ["id"]


class TestTransformationTests:
    """Tests for run_transformation_tests."""

    def test_each_sample_reported(self):
        from contracthub.core.versioning.compatibility import run_transformation_tests

        results = run_transformation_tests([{"id": "1"}, {"id": "2"}], "1.0", "1.1")

        assert [r.test_case for r in results] == [1, 2]
        assert all(r.success for r in results)
        assert results[0].transformed_data["enhanced_analytics"] == {}

    def test_failure_isolated_per_sample(self):
        from contracthub.core.versioning.compatibility import run_transformation_tests
        from contracthub.core.versioning.resolver import ChainExecutor

        class ExplodingExecutor(ChainExecutor):
            def apply_chain(self, payload, from_version, to_version):
                if payload.get("explode"):
                    raise RuntimeError("boom")
                return super().apply_chain(payload, from_version, to_version)

        results = run_transformation_tests(
            [{"id": "1"}, {"id": "2", "explode": True}, {"id": "3"}],
            "1.0",
            "2.0",
            executor=ExplodingExecutor(),
        )

        assert [r.success for r in results] == [True, False, True]
        assert results[1].transformed_data is None
        assert results[1].issues == ["Transformation failed: boom"]

    def test_to_dict(self):
        from contracthub.core.versioning.compatibility import run_transformation_tests

        data = run_transformation_tests([{"id": "1"}], "1.1", "1.1")[0].to_dict()

        assert data == {
            "test_case": 1,
            "original_data": {"id": "1"},
            "transformed_data": {"id": "1"},
            "success": True,
            "issues": [],
        }


class TestCompatibilityInfo:
    """Tests for compatibility_info."""

    def test_lists_reachable_targets(self):
        from contracthub.core.versioning.compatibility import compatibility_info

        assert compatibility_info("1.0")["migration_available_to"] == ["1.1", "2.0"]
        assert compatibility_info("2.0")["migration_available_to"] == []

    def test_rejects_unknown(self):
        from contracthub.core.versioning.compatibility import compatibility_info
        from contracthub.core.versioning.exceptions import InvalidVersionError

        with pytest.raises(InvalidVersionError):
            compatibility_info("0.9")

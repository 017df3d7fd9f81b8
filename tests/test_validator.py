import pytest

from ingest_service.validator import LogValidator


@pytest.fixture
def validator():
    return LogValidator()


class TestLogValidator:
    def test_valid_log(self, validator, sample_valid_log):
        is_valid, errors = validator.validate(sample_valid_log)
        assert is_valid is True
        assert errors == []

    def test_minimal_log(self, validator):
        is_valid, _ = validator.validate({"app": "MyApp", "title": "Ping"})
        assert is_valid is True

    def test_missing_required_fields(self, validator):
        is_valid, errors = validator.validate({"content": "hello"})
        assert is_valid is False
        error_text = " ".join(errors)
        assert "title" in error_text or "app" in error_text

    def test_empty_title_rejected(self, validator):
        is_valid, _ = validator.validate({"app": "MyApp", "title": ""})
        assert is_valid is False

    def test_invalid_level(self, validator, sample_valid_log):
        sample_valid_log["logLevel"] = "INVALID"
        is_valid, errors = validator.validate(sample_valid_log)
        assert is_valid is False
        assert len(errors) > 0

    def test_location_requires_coordinates(self, validator, sample_valid_log):
        sample_valid_log["location"] = {"accuracy": 5}
        is_valid, _ = validator.validate(sample_valid_log)
        assert is_valid is False

    def test_shipper_records_are_valid(self, validator):
        from mobile_logger.models import create_log_record

        record = create_log_record(
            app="MyApp",
            title="Location Updated",
            device_id="dev-1",
            location={"latitude": 1.5, "longitude": 2.5},
            duration=12,
        )
        is_valid, errors = validator.validate(record.to_dict())
        assert is_valid is True, errors

    def test_stats_count_error_types(self, validator):
        validator.validate({"app": "MyApp", "title": "ok"})
        validator.validate({"app": "MyApp"})
        validator.validate({"app": "MyApp", "title": "x", "logLevel": "loud"})
        stats = validator.get_stats()
        assert stats["total"] == 3
        assert stats["valid"] == 1
        assert stats["invalid"] == 2
        assert stats["error_types"] == {"required": 1, "enum": 1}

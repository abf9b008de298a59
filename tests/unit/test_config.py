"""
Unit tests for scan options and settings loading.

Run with: pytest tests/unit/test_config.py -v
"""

import pytest
from pydantic import ValidationError

from apisentinel.core.config import (
    ConfigError,
    PacingSettings,
    ScannerSettings,
    ScanOptions,
    load_settings,
)
from apisentinel.core.injection import InjectLocation
from apisentinel.payloads import VulnerabilityType


class TestScanOptions:
    """Test suite for ScanOptions"""

    def test_defaults(self):
        """Test all types, five payloads and every location by default"""
        options = ScanOptions()

        assert options.scan_types is None
        assert options.max_payloads == 5
        assert options.inject_location is InjectLocation.ALL
        assert all(options.selects(t) for t in VulnerabilityType)

    def test_camel_case_aliases(self):
        """Test the camelCase keys used by API callers are accepted"""
        options = ScanOptions.model_validate({
            "scanTypes": ["SQL Injection", "xss"],
            "maxPayloads": 3,
            "injectLocation": "QUERY",
        })

        assert options.scan_types == [VulnerabilityType.SQL_INJECTION, VulnerabilityType.XSS]
        assert options.max_payloads == 3
        assert options.inject_location is InjectLocation.QUERY
        assert options.selects(VulnerabilityType.XSS)
        assert not options.selects(VulnerabilityType.PAYLOAD_SIZE)

    def test_empty_selection_means_all(self):
        """Test an empty type list selects every type"""
        options = ScanOptions(scan_types=[])

        assert options.scan_types is None

    def test_single_type_string(self):
        """Test a bare type name is accepted as a one-element selection"""
        options = ScanOptions(scan_types="path-traversal")

        assert options.scan_types == [VulnerabilityType.PATH_TRAVERSAL]

    def test_zero_max_payloads_uses_default(self):
        """Test a missing or zero payload limit falls back to five"""
        assert ScanOptions(max_payloads=0).max_payloads == 5

    def test_rejects_negative_max_payloads(self):
        """Test negative limits are rejected"""
        with pytest.raises(ValidationError):
            ScanOptions(max_payloads=-1)

    def test_rejects_unknown_type(self):
        """Test unknown vulnerability types are rejected"""
        with pytest.raises(ValidationError):
            ScanOptions(scan_types=["Buffer Overflow"])

    def test_rejects_unknown_location(self):
        """Test unknown injection locations are rejected"""
        with pytest.raises(ValidationError):
            ScanOptions(inject_location="cookie")

    def test_to_dict(self):
        """Test options serialize to display names"""
        options = ScanOptions(scan_types=["NoSQL Injection"], max_payloads=2, inject_location="body")

        assert options.to_dict() == {
            "scan_types": ["NoSQL Injection"],
            "max_payloads": 2,
            "inject_location": "body",
        }


class TestLoadSettings:
    """Test suite for load_settings()"""

    def test_defaults_without_path(self):
        """Test no path yields default settings"""
        settings = load_settings()

        assert isinstance(settings, ScannerSettings)
        assert settings.dispatcher.timeout == 15.0
        assert settings.pacing.probe_interval == 0.05
        assert settings.pacing.variant_cap == 2
        assert settings.registry_ttl == 3600.0

    def test_load_yaml(self, tmp_path):
        """Test values are read from a YAML document"""
        config_file = tmp_path / "scanner.yaml"
        config_file.write_text(
            "scan:\n"
            "  scan_types: [\"SQL Injection\"]\n"
            "  max_payloads: 3\n"
            "dispatcher:\n"
            "  timeout: 5\n"
            "  verify_ssl: false\n"
            "pacing:\n"
            "  probe_interval: 0\n"
            "  max_concurrency: 4\n",
            encoding="utf-8",
        )

        settings = load_settings(config_file)

        assert settings.scan.scan_types == [VulnerabilityType.SQL_INJECTION]
        assert settings.scan.max_payloads == 3
        assert settings.dispatcher.timeout == 5
        assert settings.dispatcher.verify_ssl is False
        assert settings.pacing.probe_interval == 0
        assert settings.pacing.max_concurrency == 4

    def test_empty_file(self, tmp_path):
        """Test an empty document yields defaults"""
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("", encoding="utf-8")

        assert load_settings(config_file) == ScannerSettings()

    def test_missing_file(self, tmp_path):
        """Test a missing file raises ConfigError"""
        with pytest.raises(ConfigError, match="Cannot read"):
            load_settings(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        """Test malformed YAML raises ConfigError"""
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("scan: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(config_file)

    def test_non_mapping(self, tmp_path):
        """Test a top-level list raises ConfigError"""
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="mapping"):
            load_settings(config_file)

    def test_invalid_values(self, tmp_path):
        """Test out-of-range values raise ConfigError"""
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("dispatcher:\n  timeout: -1\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_settings(config_file)


class TestPacingSettings:
    """Test suite for PacingSettings"""

    def test_rejects_zero_concurrency(self):
        """Test concurrency must be at least one"""
        with pytest.raises(ValidationError):
            PacingSettings(max_concurrency=0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

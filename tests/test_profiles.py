"""Tests for the device profile registry."""

import pytest

from biometric_bridge.utils.config import Config
from biometric_bridge.utils.errors import UnknownModality
from biometric_bridge.utils.profiles import (
    Modality,
    ProfileRegistry,
    build_profile,
    derive_insecure_endpoint,
)


class TestDefaults:
    def test_default_endpoints_and_timeouts(self):
        registry = ProfileRegistry.from_config(Config())

        fp = registry.resolve(Modality.FINGERPRINT)
        iris = registry.resolve(Modality.IRIS)
        photo = registry.resolve(Modality.PHOTOGRAPH)

        assert fp.secure_endpoint == "https://127.0.0.1:11101"
        assert iris.secure_endpoint == "https://127.0.0.1:11102"
        assert photo.secure_endpoint == "https://127.0.0.1:11103"
        assert (fp.timeout_ms, iris.timeout_ms, photo.timeout_ms) == (10000, 15000, 10000)

    def test_capture_counts_per_modality(self):
        registry = ProfileRegistry.from_config(Config())

        assert registry.resolve("fingerprint").defaults.finger_count == "1"
        assert registry.resolve("iris").defaults.iris_count == "2"
        assert registry.resolve("photograph").defaults.photo_count == "1"
        assert registry.resolve("iris").defaults.finger_count == "0"

    def test_config_overrides(self):
        config = Config(RDSERVICE_IRIS_URL="https://127.0.0.1:12000/", IRIS_TIMEOUT_MS=30000)
        iris = ProfileRegistry.from_config(config).resolve(Modality.IRIS)

        assert iris.secure_endpoint == "https://127.0.0.1:12000"
        assert iris.insecure_endpoint == "http://127.0.0.1:12000"
        assert iris.timeout_ms == 30000


class TestResolve:
    def test_accepts_enum_and_string(self):
        registry = ProfileRegistry.from_config(Config())
        assert registry.resolve("iris") is registry.resolve(Modality.IRIS)

    @pytest.mark.parametrize("bad", ["palm", "", "FINGERPRINT", None])
    def test_unknown_modality(self, bad):
        registry = ProfileRegistry.from_config(Config())
        with pytest.raises(UnknownModality):
            registry.resolve(bad)

    def test_unknown_modality_is_value_error(self):
        with pytest.raises(ValueError):
            ProfileRegistry.from_config(Config()).resolve("voice")

    def test_registry_requires_every_modality(self):
        fp = build_profile(Modality.FINGERPRINT, "https://127.0.0.1:11101", 10000)
        with pytest.raises(ValueError, match="iris"):
            ProfileRegistry({Modality.FINGERPRINT: fp})

    def test_profiles_are_immutable(self):
        profile = ProfileRegistry.from_config(Config()).resolve(Modality.FINGERPRINT)
        with pytest.raises(AttributeError):
            profile.timeout_ms = 1


class TestInsecureEndpoint:
    def test_keeps_host_port_and_path(self):
        assert derive_insecure_endpoint("https://127.0.0.1:11101/rd") == "http://127.0.0.1:11101/rd"

    def test_http_stays_http(self):
        assert derive_insecure_endpoint("http://localhost:11100") == "http://localhost:11100"

    def test_endpoints_order(self):
        profile = build_profile(Modality.FINGERPRINT, "https://127.0.0.1:11101", 10000)
        assert profile.endpoints == ("https://127.0.0.1:11101", "http://127.0.0.1:11101")

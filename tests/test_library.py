"""Tests for fbspine.native.library (support library discovery)."""

import pytest

from fbspine.errors import ConfigError
from fbspine.native import NativeLibrary
from fbspine.native.library import LIBRARY_NAME, _candidates, load_library
from fbspine.testing import FakeNativeLibrary


class TestCandidates:
    def test_configured_file_first(self, tmp_path):
        library = tmp_path / "libcustom.so"
        library.touch()
        assert _candidates(library)[0] == str(library)

    def test_configured_directory(self, tmp_path):
        first = _candidates(tmp_path)[0]
        assert first.startswith(str(tmp_path))
        assert LIBRARY_NAME in first

    def test_platform_defaults(self):
        candidates = _candidates(None)
        assert any(candidate.startswith("/usr/local/lib") for candidate in candidates)


class TestLoadLibrary:
    def test_missing_library_is_config_error(self, tmp_path):
        with pytest.raises(ConfigError) as excinfo:
            load_library(tmp_path / "libmissing.so")
        assert "FRONTBASE_LIBRARY_PATH" in str(excinfo.value)
        assert excinfo.value.context.metadata["candidates"]

    def test_settings_path_is_used(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FRONTBASE_LIBRARY_PATH", str(tmp_path / "libfromenv.so"))
        with pytest.raises(ConfigError) as excinfo:
            load_library()
        assert any("libfromenv.so" in failure for failure in excinfo.value.context.metadata["candidates"])


class TestProtocol:
    def test_fake_library_satisfies_protocol(self):
        assert isinstance(FakeNativeLibrary(), NativeLibrary)

import pytest
from pydantic import ValidationError

from dirsweep.errors import ConfigError
from dirsweep.models import DEFAULT_STATUS_CODES, ScanConfig, ScanResponse, load_config


def test_defaults():
    config = ScanConfig(target_url="http://example.test")
    assert config.threads == 50
    assert config.depth == 4
    assert config.status_codes == DEFAULT_STATUS_CODES
    assert not config.save_output


def test_needs_exactly_one_target_source():
    with pytest.raises(ValidationError):
        ScanConfig()
    with pytest.raises(ValidationError):
        ScanConfig(target_url="http://example.test", stdin=True)


def test_rejects_bad_numbers():
    with pytest.raises(ValidationError):
        ScanConfig(target_url="http://example.test", threads=0)
    with pytest.raises(ValidationError):
        ScanConfig(target_url="http://example.test", depth=-1)


def test_extensions_lose_leading_dot():
    config = ScanConfig(target_url="http://example.test", extensions=[".php", "txt", "."])
    assert config.extensions == ["php", "txt"]


def test_save_output(tmp_path):
    assert ScanConfig(target_url="http://e.test", output=tmp_path / "out.txt").save_output


def test_response_line():
    resp = ScanResponse(url="http://e.test/admin", status=301, size=178)
    assert resp.as_line() == "301        178c http://e.test/admin"


def test_load_config_raises_config_error():
    with pytest.raises(ConfigError, match="exactly one of"):
        load_config(target_url="http://example.test", stdin=True)
    with pytest.raises(ConfigError, match="threads"):
        load_config(target_url="http://example.test", threads=0)
    assert load_config(stdin=True).stdin

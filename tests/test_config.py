import json

import pytest

from mdlinkcheck.config import (
    CheckOptions,
    apply_config,
    load_config_file,
    parse_duration,
    parse_status_codes,
)
from mdlinkcheck.models import FatalError


def test_parse_status_codes_accepts_comma_separated_list():
    assert parse_status_codes("200, 206,301") == frozenset({200, 206, 301})


@pytest.mark.parametrize("value", ["", " , ", "200,abc", "2OO"])
def test_parse_status_codes_rejects_malformed_values(value):
    with pytest.raises(ValueError):
        parse_status_codes(value)


@pytest.mark.parametrize(
    "value, expected",
    [(5, 5.0), ("2.5", 2.5), ("500ms", 0.5), ("10s", 10.0), ("1m30s", 90.0), ("1h", 3600.0)],
)
def test_parse_duration_units(value, expected):
    assert parse_duration(value) == pytest.approx(expected)


def test_parse_duration_rejects_garbage():
    with pytest.raises(ValueError):
        parse_duration("soon")


def test_config_overrides_cli_alive_codes(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"aliveStatusCodes": [200, 301]}), encoding="utf-8")
    cli_options = CheckOptions(alive_status_codes=frozenset({204}))

    merged = apply_config(cli_options, load_config_file(config_path))

    assert merged.alive_status_codes == frozenset({200, 301})


def test_apply_config_maps_all_known_keys():
    config = {
        "ignorePatterns": [{"pattern": "^http://localhost"}],
        "replacementPatterns": [{"pattern": "^/", "replacement": "{{BASEURL}}/"}],
        "httpHeaders": [{"urls": ["https://a.test"], "headers": {"X-Token": "1"}}],
        "timeout": "20s",
        "ignoreDisable": True,
        "retryOn429": True,
        "retryCount": 5,
        "fallbackRetryDelay": "1m",
        "somethingElse": 1,
    }
    merged = apply_config(CheckOptions(base_url="file:///docs"), config)

    assert merged.ignore_patterns == ({"pattern": "^http://localhost"},)
    assert merged.replacement_patterns[0]["replacement"] == "{{BASEURL}}/"
    assert merged.http_headers[0]["headers"] == {"X-Token": "1"}
    assert merged.timeout == 20.0
    assert merged.ignore_disable is True
    assert merged.retry_on_429 is True
    assert merged.retry_count == 5
    assert merged.fallback_retry_delay == 60.0
    assert merged.base_url == "file:///docs"


def test_apply_config_without_config_returns_same_options():
    options = CheckOptions(quiet=True)
    assert apply_config(options, None) is options


def test_missing_config_file_is_fatal(tmp_path):
    with pytest.raises(FatalError):
        load_config_file(tmp_path / "missing.json")


def test_invalid_json_propagates(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text("{not json", encoding="utf-8")
    with pytest.raises(json.JSONDecodeError):
        load_config_file(config_path)


@pytest.mark.parametrize("key", ["ignoreDisable", "retryOn429"])
@pytest.mark.parametrize("value", ["false", "true", 0, 1, None])
def test_boolean_keys_require_json_booleans(key, value):
    with pytest.raises(ValueError):
        apply_config(CheckOptions(), {key: value})


def test_boolean_keys_accept_json_booleans():
    merged = apply_config(CheckOptions(retry_on_429=True), {"ignoreDisable": True, "retryOn429": False})
    assert merged.ignore_disable is True
    assert merged.retry_on_429 is False

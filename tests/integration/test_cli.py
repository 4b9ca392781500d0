"""
tests/integration/test_cli.py

Integration tests for app.py.
Runs main() end to end against a tmp_path config file and cache directory;
the IP provider and the update endpoint are intercepted by respx.
"""

from __future__ import annotations

import httpx
import pytest

from app import main

_IPIFY = "https://api.ipify.org"
_UPDATE_URL = "https://dyndns.example.net/nic/update"


@pytest.fixture()
def config_file(tmp_path, cache_dir):
    path = tmp_path / "config.toml"
    path.write_text(
        f"""
cache_dir = "{cache_dir}"

[hosts."one.example.com"]
dyndns_url = "{_UPDATE_URL}"
username = "user"
password = "secret"

[hosts."two.example.com"]
dyndns_url = "{_UPDATE_URL}"
token = "abc123"
"""
    )
    return path


def _mock_endpoints(mock_http, bodies):
    mock_http.get(_IPIFY).mock(return_value=httpx.Response(200, text="1.2.3.4"))

    def respond(request):
        return httpx.Response(200, text=bodies[request.url.params["hostname"]])

    return mock_http.get(_UPDATE_URL).mock(side_effect=respond)


# ---------------------------------------------------------------------------
# Default command: update every configured host
# ---------------------------------------------------------------------------


def test_update_all_writes_cache_and_exits_zero(mock_http, config_file, cache_dir):
    route = _mock_endpoints(mock_http, {"one.example.com": "good 1.2.3.4", "two.example.com": "nochg 1.2.3.4"})

    assert main(["--config-file", str(config_file)]) == 0

    assert route.call_count == 2
    assert (cache_dir / "one.example.com").read_text() == "good 1.2.3.4"
    assert (cache_dir / "two.example.com").read_text() == "nochg 1.2.3.4"


def test_second_run_makes_no_update_calls(mock_http, config_file):
    route = _mock_endpoints(mock_http, {"one.example.com": "good 1.2.3.4", "two.example.com": "good 1.2.3.4"})

    assert main(["--config-file", str(config_file)]) == 0
    assert main(["--config-file", str(config_file)]) == 0

    assert route.call_count == 2


def test_partial_failure_exits_nonzero(mock_http, config_file, cache_dir, caplog):
    """One host's badauth fails the run but the other host is still updated."""
    _mock_endpoints(mock_http, {"one.example.com": "badauth", "two.example.com": "good 1.2.3.4"})

    assert main(["--config-file", str(config_file)]) == 1

    assert (cache_dir / "one.example.com").read_text() == "badauth Authentication failed"
    assert (cache_dir / "two.example.com").read_text() == "good 1.2.3.4"
    assert "one.example.com" in caplog.text


def test_ip_lookup_failure_exits_nonzero(mock_http, config_file):
    mock_http.get(_IPIFY).mock(return_value=httpx.Response(503))

    assert main(["--config-file", str(config_file)]) == 1


def test_missing_config_exits_nonzero(tmp_path):
    assert main(["--config-file", str(tmp_path / "missing.toml")]) == 1


# ---------------------------------------------------------------------------
# update-host / clear-cache / show-cache
# ---------------------------------------------------------------------------


def test_update_host_from_arguments(mock_http, tmp_path, cache_dir):
    route = _mock_endpoints(mock_http, {"a.example.com": "good 1.2.3.4"})

    code = main(
        [
            "--config-file", str(tmp_path / "absent.toml"),
            "--cache-dir", str(cache_dir),
            "update-host", "a.example.com",
            "-d", _UPDATE_URL, "-u", "user", "-p", "secret",
        ]
    )

    assert code == 0
    assert route.call_count == 1
    assert (cache_dir / "a.example.com").read_text() == "good 1.2.3.4"


def test_update_host_rejects_two_auth_forms(tmp_path, cache_dir):
    code = main(
        [
            "--config-file", str(tmp_path / "absent.toml"),
            "--cache-dir", str(cache_dir),
            "update-host", "a.example.com",
            "-d", _UPDATE_URL, "-u", "user", "-p", "secret", "-t", "token",
        ]
    )

    assert code == 1


def test_fatal_blocks_until_clear_cache(mock_http, config_file, cache_dir):
    """After a fatal answer the host is blocked; clear-cache unblocks it."""
    route = _mock_endpoints(mock_http, {"one.example.com": "nohost", "two.example.com": "good 1.2.3.4"})
    assert main(["--config-file", str(config_file)]) == 1
    assert main(["--config-file", str(config_file)]) == 1
    assert route.call_count == 2

    assert main(["--config-file", str(config_file), "clear-cache", "one.example.com"]) == 0
    assert not (cache_dir / "one.example.com").exists()

    route.side_effect = lambda request: httpx.Response(200, text="good 1.2.3.4")
    assert main(["--config-file", str(config_file)]) == 0
    assert route.call_count == 3


def test_clear_cache_missing_entry_exits_nonzero(config_file):
    assert main(["--config-file", str(config_file), "clear-cache", "nobody.example.com"]) == 1


def test_show_cache_prints_entry(config_file, cache_dir, capsys):
    cache_dir.mkdir()
    (cache_dir / "one.example.com").write_text("911 Server error")

    assert main(["--config-file", str(config_file), "show-cache", "one.example.com"]) == 0

    out = capsys.readouterr().out
    assert "911 Server error" in out
    assert "gddns clear-cache one.example.com" in out


def test_show_cache_successful_entry_has_no_clear_hint(config_file, cache_dir, capsys):
    cache_dir.mkdir()
    (cache_dir / "one.example.com").write_text("good 1.2.3.4")

    assert main(["--config-file", str(config_file), "show-cache", "one.example.com"]) == 0

    out = capsys.readouterr().out
    assert "IP updated (1.2.3.4)" in out
    assert "clear-cache" not in out


def test_hostname_with_slash_is_rejected(config_file):
    with pytest.raises(SystemExit):
        main(["--config-file", str(config_file), "clear-cache", "../etc/passwd"])

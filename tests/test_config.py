from datetime import timedelta

import pytest

from softbake.config import BuilderConfig, parse_duration, resolve_config, scrub_config
from softbake.core.exceptions import ConfigurationError

pytestmark = [pytest.mark.xdist_group("unit")]

ENV = {"SOFTLAYER_API_KEY": "env-key", "SOFTLAYER_USER_NAME": "env-user"}


def _resolve(raw, **kwargs):
    kwargs.setdefault("env", {})
    kwargs.setdefault("timestamp", 1700000000)
    return resolve_config(raw, **kwargs)


def _errors(raw, **kwargs) -> list[str]:
    with pytest.raises(ConfigurationError) as exc_info:
        _resolve(raw, **kwargs)
    return exc_info.value.errors


MINIMAL = {
    "username": "u",
    "api_key": "k",
    "image_name": "img1",
    "base_os_code": "UBUNTU_LATEST",
}


class TestDefaults:
    def test_minimal_config_fills_defaults(self):
        config = _resolve(MINIMAL)
        assert config.datacenter_name == "ams01"
        assert config.instance_name == "softbake-softlayer-1700000000"
        assert config.instance_domain == "defaultdomain.com"
        assert config.image_description == "Instance snapshot. Generated by softbake."
        assert config.image_type == "flex"
        assert config.instance_cpu == 1
        assert config.instance_memory == 1024
        assert config.instance_network_speed == 10
        assert config.instance_disk_capacity == 25
        assert config.ssh_port == 22
        assert config.ssh_username == "root"
        assert config.ssh_timeout == timedelta(minutes=5)
        assert config.state_timeout == timedelta(minutes=10)
        assert config.raw_ssh_timeout == "5m"
        assert config.raw_state_timeout == "10m"

    def test_explicit_values_win(self):
        config = _resolve({
            **MINIMAL,
            "datacenter_name": "dal05",
            "instance_cpu": 4,
            "instance_memory": "2048",
            "ssh_timeout": "90s",
        })
        assert config.datacenter_name == "dal05"
        assert config.instance_cpu == 4
        assert config.instance_memory == 2048
        assert config.ssh_timeout == timedelta(seconds=90)

    def test_zero_values_take_defaults(self):
        config = _resolve({**MINIMAL, "instance_cpu": 0, "ssh_port": 0})
        assert config.instance_cpu == 1
        assert config.ssh_port == 22

    def test_resolution_is_repeatable(self):
        assert _resolve(MINIMAL) == _resolve(MINIMAL)

    def test_later_mappings_override_earlier(self):
        config = resolve_config(MINIMAL, {"image_name": "other"}, env={}, timestamp=1)
        assert config.image_name == "other"

    def test_result_is_frozen(self):
        config = _resolve(MINIMAL)
        with pytest.raises(AttributeError):
            config.image_name = "x"  # type: ignore[misc]


class TestCredentials:
    def test_env_fallback(self):
        raw = {k: v for k, v in MINIMAL.items() if k not in ("username", "api_key")}
        config = _resolve(raw, env=ENV)
        assert config.api_key == "env-key"
        assert config.username == "env-user"

    def test_explicit_credentials_beat_env(self):
        config = _resolve(MINIMAL, env=ENV)
        assert config.api_key == "k"
        assert config.username == "u"

    def test_missing_credentials(self):
        raw = {"api_key": "", "username": "", "image_name": "img1", "base_os_code": "UBUNTU_LATEST"}
        assert _errors(raw, env={}) == [
            "api_key or the SOFTLAYER_API_KEY environment variable must be specified",
            "username or the SOFTLAYER_USER_NAME environment variable must be specified",
        ]


class TestValidation:
    def test_missing_image_name(self):
        raw = {k: v for k, v in MINIMAL.items() if k != "image_name"}
        assert _errors(raw) == ["image_name must be specified"]

    def test_unknown_image_type(self):
        errors = _errors({**MINIMAL, "image_type": "bogus"})
        assert errors == [
            "Unknown image_type 'bogus'. Must be one of 'flex' (the default) or 'standard'."
        ]

    def test_standard_image_type(self):
        assert _resolve({**MINIMAL, "image_type": "standard"}).image_type == "standard"

    def test_needs_a_base(self):
        raw = {k: v for k, v in MINIMAL.items() if k != "base_os_code"}
        assert _errors(raw) == ["please specify base_image_id or base_os_code"]

    def test_base_image_and_os_code_are_exclusive(self):
        errors = _errors({**MINIMAL, "base_image_id": "abc", "ssh_private_key_file": "/k"})
        assert errors == ["please specify only one of base_image_id or base_os_code"]

    def test_base_image_requires_private_key_file(self):
        raw = {k: v for k, v in MINIMAL.items() if k != "base_os_code"}
        errors = _errors({**raw, "base_image_id": "abc"})
        assert len(errors) == 1
        assert errors[0].startswith("when using base_image_id, you must specify ssh_private_key_file")

    def test_base_image_with_key_file(self):
        config = _resolve({
            "api_key": "k",
            "username": "u",
            "image_name": "img1",
            "base_image_id": "123",
            "ssh_private_key_file": "/k.pem",
        })
        assert config.base_image_id == "123"
        assert config.image_type == "flex"
        assert config.instance_cpu == 1
        assert config.ssh_timeout == timedelta(minutes=5)

    def test_unknown_key(self):
        assert _errors({**MINIMAL, "colour": "red"}) == ["unknown configuration key: 'colour'"]

    def test_bad_timeouts(self):
        errors = _errors({**MINIMAL, "ssh_timeout": "soon", "instance_state_timeout": "10"})
        assert len(errors) == 2
        assert errors[0].startswith("Failed parsing ssh_timeout:")
        assert errors[1].startswith("Failed parsing instance_state_timeout:")

    def test_wrong_integer_type(self):
        errors = _errors({**MINIMAL, "instance_cpu": "many"})
        assert errors == ["instance_cpu: expected an integer, got 'many'"]

    @pytest.mark.parametrize("value", ["--5", "\u00b2", "1.5"])
    def test_malformed_integer_strings(self, value: str):
        errors = _errors({**MINIMAL, "instance_memory": value})
        assert errors == [f"instance_memory: expected an integer, got {value!r}"]

    def test_integer_string_with_whitespace(self):
        assert _resolve({**MINIMAL, "ssh_port": " 2222 "}).ssh_port == 2222

    def test_duration_out_of_range(self):
        errors = _errors({**MINIMAL, "ssh_timeout": "99999999999999h"})
        assert len(errors) == 1
        assert errors[0].startswith("Failed parsing ssh_timeout: invalid duration")

    def test_errors_accumulate(self):
        errors = _errors({"colour": "red", "image_type": "bogus"})
        assert len(errors) == 6

    def test_error_message_lists_every_error(self):
        with pytest.raises(ConfigurationError) as exc_info:
            _resolve({"base_os_code": "X", "username": "u", "api_key": "k", "colour": "r"})
        message = str(exc_info.value)
        assert message.startswith("2 error(s) occurred:")
        assert "* unknown configuration key: 'colour'" in message
        assert "* image_name must be specified" in message


class TestExpansion:
    def test_user_variables(self):
        config = _resolve(
            {**MINIMAL, "image_name": "web-{{ user `version` }}"},
            user_vars={"version": "1.2"},
        )
        assert config.image_name == "web-1.2"

    def test_timestamp(self):
        config = _resolve({**MINIMAL, "image_name": "web-{{ timestamp }}"}, timestamp=42)
        assert config.image_name == "web-42"

    def test_env(self):
        config = _resolve({**MINIMAL, "datacenter_name": "{{ env `DC` }}"}, env={"DC": "sjc01"})
        assert config.datacenter_name == "sjc01"

    def test_expansion_errors_accumulate(self):
        errors = _errors({
            **MINIMAL,
            "image_name": "{{ user `missing` }}",
            "instance_domain": "{{ nope }}",
        })
        assert errors[0].startswith("Error processing image_name:")
        assert errors[1] == 'Error processing instance_domain: function "nope" not defined'


class TestScrubConfig:
    def test_secrets_are_filtered(self):
        text = scrub_config(BuilderConfig(username="alice", api_key="s3cret"), "s3cret", "alice")
        assert "s3cret" not in text
        assert "alice" not in text
        assert "<Filtered>" in text

    def test_empty_secret_is_ignored(self):
        assert "<Filtered>" not in scrub_config(BuilderConfig(image_name="x"), "")


class TestParseDuration:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("0", timedelta(0)),
            ("5m", timedelta(minutes=5)),
            ("90s", timedelta(seconds=90)),
            ("300ms", timedelta(milliseconds=300)),
            ("1.5h", timedelta(minutes=90)),
            ("2h45m", timedelta(hours=2, minutes=45)),
            ("1m30s", timedelta(seconds=90)),
            ("-1s", timedelta(seconds=-1)),
            ("+2s", timedelta(seconds=2)),
            ("10us", timedelta(microseconds=10)),
        ],
    )
    def test_valid(self, text: str, expected: timedelta):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "5x", "m", "1m junk", "-", "2562048h", "99999999999999h"])
    def test_invalid(self, text: str):
        with pytest.raises(ValueError, match="invalid duration"):
            parse_duration(text)

    def test_missing_unit(self):
        with pytest.raises(ValueError, match="missing unit"):
            parse_duration("10")

from pathlib import Path

import pytest

from sshd_buddy.options import (
    AUTHORIZED_KEYS_FILE,
    ConfigError,
    SshdSettings,
    UserKeySpec,
    from_dict,
    parse_openssh,
    parse_users,
)


def test_openssh_defaults():
    s = parse_openssh({})
    assert s == SshdSettings(enable=False, password_authentication=True, challenge_response_authentication=True)


def test_overrides_order_and_values():
    s = SshdSettings(enable=True, password_authentication=False, challenge_response_authentication=True)
    assert s.overrides() == [
        ("AuthorizedKeysFile", AUTHORIZED_KEYS_FILE),
        ("ChallengeResponseAuthentication", "yes"),
        ("PasswordAuthentication", "no"),
    ]


def test_openssh_rejects_non_bool():
    with pytest.raises(ConfigError, match="option_not_bool key=enable"):
        parse_openssh({"services": {"openssh": {"enable": "yes"}}})


def test_users(tmp_path):
    data = {
        "users": {
            "alice": {"openssh": {"authorizedKeys": {"keys": ["k1", "k2"], "keyFiles": ["alice.pub", "/abs/a.pub"]}}},
            "bob": None,
        }
    }
    alice, bob = parse_users(data, tmp_path)
    assert alice.username == "alice"
    assert alice.keys == ("k1", "k2")
    assert alice.key_files == ((tmp_path / "alice.pub").resolve(), Path("/abs/a.pub"))
    assert alice.has_keys
    assert bob == UserKeySpec("bob")
    assert not bob.has_keys


def test_users_rejects_non_list():
    with pytest.raises(ConfigError, match="users.alice.openssh.authorizedKeys.keys"):
        parse_users({"users": {"alice": {"openssh": {"authorizedKeys": {"keys": "k1"}}}}}, Path("/"))


@pytest.mark.parametrize("name", ["", ".", "..", "a/b"])
def test_username_must_be_path_component(name):
    with pytest.raises(ConfigError, match="username_invalid"):
        UserKeySpec(name)


def test_from_dict_paths(tmp_path, monkeypatch):
    cfg_path = tmp_path / "config" / "config.yml"
    cfg = from_dict({"paths": {"state_dir": "./state"}}, cfg_path)
    assert cfg.paths.state_dir == tmp_path / "state"
    assert cfg.paths.sshd_config == Path("/etc/ssh/sshd_config")

    monkeypatch.setenv("SSHD_BUDDY_SSHD_CONFIG", str(tmp_path / "sshd_config"))
    monkeypatch.setenv("SSHD_BUDDY_ETC_DIR", str(tmp_path / "etc"))
    cfg = from_dict({}, cfg_path)
    assert cfg.paths.sshd_config == tmp_path / "sshd_config"
    assert cfg.paths.etc_dir == tmp_path / "etc"

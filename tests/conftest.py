from textwrap import dedent

import pytest

SSHD_CONFIG = dedent(
    """\
    #	$OpenBSD: sshd_config,v 1.104 2021/07/02 05:11:21 dtucker Exp $

    #Port 22
    #PermitRootLogin prohibit-password
    AuthorizedKeysFile	.ssh/authorized_keys
    PasswordAuthentication yes
    ChallengeResponseAuthentication yes
    UsePAM yes

    Subsystem	sftp	/usr/libexec/sftp-server
    """
)

ALICE_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIA1J77+CrJ8p6/vWCEzuylqJNMHUP/XmeYyGVWb8lnDd a@b"
BOB_KEY = "ssh-rsa AAAAB3NzaC1yc2EAAAABIwAAAQEA3I7VUf2l5gSn5uavROsc5HRDpZdQueUq5oz bob@host"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("SSHD_BUDDY_ETC_DIR", "SSHD_BUDDY_SSHD_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SSHD_BUDDY_ROOT", str(tmp_path))


@pytest.fixture
def sshd_config(tmp_path):
    path = tmp_path / "etc" / "ssh" / "sshd_config"
    path.parent.mkdir(parents=True)
    path.write_text(SSHD_CONFIG, encoding="utf-8")
    return path


@pytest.fixture
def write_config(tmp_path, sshd_config):
    def _write(body: str):
        cfg_dir = tmp_path / "config"
        cfg_dir.mkdir(exist_ok=True)
        head = dedent(
            f"""\
            paths:
              etc_dir: {tmp_path / "etc"}
              sshd_config: {sshd_config}
              state_dir: ./var/sshd-buddy
              log_file: ./var/sshd-buddy/sshd-buddy.log
            """
        )
        path = cfg_dir / "config.yml"
        path.write_text(head + dedent(body), encoding="utf-8")
        return path

    return _write

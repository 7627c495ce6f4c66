"""Tests for repository-root discovery and credential lookup."""

from imagegen.providers.provider_config import (
    find_repo_root,
    get_cloudflare_credentials,
    get_fal_key,
    load_key,
)


def test_find_repo_root_walks_up(tmp_path):
    (tmp_path / "install.sh").write_text("")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)

    assert find_repo_root(str(nested)) == str(tmp_path)


def test_find_repo_root_gives_up_after_depth(tmp_path):
    (tmp_path / ".env").write_text("")
    deep = tmp_path.joinpath(*["d"] * 12)
    deep.mkdir(parents=True)

    assert find_repo_root(str(deep)) != str(tmp_path)


def test_load_key_prefers_first_env(monkeypatch):
    monkeypatch.setenv("A_KEY", "  ")
    monkeypatch.setenv("B_KEY", "b-value")
    assert load_key(("A_KEY", "B_KEY")) == "b-value"


def test_load_key_reads_file(tmp_path):
    key_file = tmp_path / "fal.key"
    key_file.write_text("file-key\n")

    assert load_key(("UNSET_KEY_NAME",), str(key_file)) == "file-key"
    assert load_key(("UNSET_KEY_NAME",), str(tmp_path / "missing.key")) is None


def test_fal_key_falls_back_to_key_file(monkeypatch, tmp_path):
    monkeypatch.delenv("FAL_KEY")
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "fal.key").write_text("from-file")

    assert get_fal_key() == "from-file"


def test_fal_key_secondary_env(monkeypatch):
    monkeypatch.delenv("FAL_KEY")
    monkeypatch.setenv("FAL_API_KEY", "secondary")
    assert get_fal_key() == "secondary"


def test_cloudflare_credentials(monkeypatch):
    assert get_cloudflare_credentials() == (None, None)
    monkeypatch.setenv("CLOUDFLARE_ACCOUNT_ID", "acct")
    monkeypatch.setenv("CLOUDFLARE_API_TOKEN", "tok")
    assert get_cloudflare_credentials() == ("acct", "tok")

import pytest

from zohobooks import Region, load_config_from_env

REQUIRED = {
    "ZOHO_CLIENT_ID": "cid",
    "ZOHO_CLIENT_SECRET": "secret",
    "ZOHO_ACCESS_TOKEN": "access",
    "ZOHO_REFRESH_TOKEN": "refresh",
    "ZOHO_ORGANIZATION_ID": "777",
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in [*REQUIRED, "ZOHO_REGION", "ZOHO_BASE_URL", "ZOHO_TOKEN_URL"]:
        monkeypatch.delenv(key, raising=False)


def test_reads_process_environment(monkeypatch):
    for key, val in REQUIRED.items():
        monkeypatch.setenv(key, val)
    cfg = load_config_from_env()
    assert cfg.client_id == "cid"
    assert cfg.organization_id == "777"
    assert cfg.region is Region.COM
    assert cfg.api_base_url == "https://www.zohoapis.com/books/v3"
    assert cfg.oauth_token_url == "https://accounts.zoho.com/oauth/v2/token"


def test_env_file_fills_gaps_and_environment_wins(monkeypatch, tmp_path):
    envp = tmp_path / ".env"
    envp.write_text(
        "# credentials\n"
        "ZOHO_CLIENT_ID=file-cid\n"
        "export ZOHO_CLIENT_SECRET='file-secret'\n"
        'ZOHO_ACCESS_TOKEN="file-access"\n'
        "ZOHO_REFRESH_TOKEN=file-refresh\n"
        "ZOHO_ORGANIZATION_ID=1\n"
        "ZOHO_REGION=EU\n"
    )
    monkeypatch.setenv("ZOHO_CLIENT_ID", "env-cid")
    cfg = load_config_from_env(env_path=str(envp))
    assert cfg.client_id == "env-cid"
    assert cfg.client_secret == "file-secret"
    assert cfg.access_token == "file-access"
    assert cfg.region is Region.EU
    assert cfg.api_base_url == "https://www.zohoapis.eu/books/v3"


def test_overrides_win_and_custom_prefix(monkeypatch):
    for key, val in REQUIRED.items():
        monkeypatch.setenv(key.replace("ZOHO_", "BOOKS_"), val)
    cfg = load_config_from_env(prefix="BOOKS_", organization_id="999", base_url="http://localhost:9")
    assert cfg.organization_id == "999"
    assert cfg.api_base_url == "http://localhost:9"


def test_missing_values_are_listed(monkeypatch, tmp_path):
    monkeypatch.setenv("ZOHO_CLIENT_ID", "cid")
    with pytest.raises(ValueError) as exc:
        load_config_from_env(env_path=str(tmp_path / "absent.env"))
    message = str(exc.value)
    assert "ZOHO_CLIENT_SECRET" in message
    assert "ZOHO_ORGANIZATION_ID" in message
    assert "ZOHO_CLIENT_ID" not in message


def test_unknown_region_rejected(monkeypatch):
    for key, val in REQUIRED.items():
        monkeypatch.setenv(key, val)
    monkeypatch.setenv("ZOHO_REGION", "mars")
    with pytest.raises(ValueError, match="ZOHO_REGION"):
        load_config_from_env()

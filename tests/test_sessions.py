"""Tests for init data extraction and session discovery."""

import pytest

from core.exceptions import RefreshError
from core.settings_config import SessionConfig
from sessions.telethon_refresher import TelethonRefresher, extract_init_data


def test_extract_init_data_decodes_fragment():
    url = ("https://www.okx.com/mini-app/racer#tgWebAppData=query_id%3DAAE%26user%3D%257B%2522id%2522%253A1%257D"
           "%26hash%3Dabc&tgWebAppVersion=7.4&tgWebAppPlatform=android")

    assert extract_init_data(url) == "query_id=AAE&user=%7B%22id%22%3A1%7D&hash=abc"


def test_extract_init_data_without_version_suffix():
    url = "https://www.okx.com/#tgWebAppData=query_id%3DAAE"

    assert extract_init_data(url) == "query_id=AAE"


@pytest.mark.parametrize("url", ["", "https://www.okx.com/mini-app/racer", "https://x/#tgWebAppData=&tgWebAppVersion=7"])
def test_extract_init_data_rejects_urls_without_payload(url):
    with pytest.raises(RefreshError):
        extract_init_data(url)


def test_session_handles_are_sorted_and_filtered(tmp_path):
    for name in ["session_b.session", "session_a.session", "notes.txt", "other.session"]:
        (tmp_path / name).write_text("x", encoding="utf-8")

    refresher = TelethonRefresher(SessionConfig(session_dir=str(tmp_path)))

    assert refresher.list_session_handles() == ["session_a.session", "session_b.session"]


def test_missing_session_dir_has_no_handles(tmp_path):
    refresher = TelethonRefresher(SessionConfig(session_dir=str(tmp_path / "absent")))

    assert refresher.list_session_handles() == []


@pytest.mark.asyncio
async def test_refresh_of_missing_session_file_raises(tmp_path):
    refresher = TelethonRefresher(SessionConfig(session_dir=str(tmp_path)))

    with pytest.raises(RefreshError):
        await refresher.refresh("session_missing.session")

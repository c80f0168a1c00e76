import anyio
import pytest

from german_legal_mcp.core.browser import BeckBrowser, BrowserState
from german_legal_mcp.core.exceptions import AuthenticationError, ConfigurationError
from german_legal_mcp.core.session_store import InMemorySessionStore, find_auth_cookie
from tests.fakes import (
    HOME_URL,
    IDP_CALLBACK_URL,
    IDP_LOGIN_URL,
    LOGIN_START_URL,
    ORIGIN,
    FakeLauncher,
    FakeSite,
    auth_cookie,
    make_settings,
)

pytestmark = pytest.mark.anyio


DOC_URL = f"{ORIGIN}/Dokument?vpath=bibdata/ges/bgb/cont/bgb.p823.htm"
DOC_HTML = "<html><body><div class='paragr'>§ 823</div></body></html>"


def test_url_helpers(browser):
    assert browser.absolute_url("/Search?words=x") == f"{ORIGIN}/Search?words=x"
    assert browser.absolute_url("https://example.org/a") == "https://example.org/a"
    assert browser.is_on_origin(HOME_URL)
    assert not browser.is_on_origin(IDP_CALLBACK_URL)
    assert BeckBrowser.is_login_form(IDP_LOGIN_URL)
    assert not BeckBrowser.is_login_form(IDP_CALLBACK_URL)
    assert not BeckBrowser.is_login_form(HOME_URL)


def test_current_url_before_launch(browser):
    assert browser.get_current_url() == ""
    assert browser.current_url == ""
    assert browser.state == BrowserState.uninitialized


async def test_cold_login_persists_cookies(browser, site, store, launcher):
    site.pages[DOC_URL] = (DOC_URL, DOC_HTML)

    result = await browser.fetch_page(DOC_URL)

    assert result.final_url == DOC_URL
    assert result.raw_content == DOC_HTML
    assert browser.state == BrowserState.authenticated
    assert site.logins == 1
    assert launcher.page.visited[0] == LOGIN_START_URL
    assert launcher.page.filled == {
        'input[name="Input.Username"]': "jurist@example.de",
        'input[name="Input.Password"]': "geheim",
    }
    saved = await store.load()
    assert find_auth_cookie(saved)["value"] == "token-1"


async def test_restored_session_skips_login(site, launcher):
    store = InMemorySessionStore([auth_cookie()])
    browser = BeckBrowser(make_settings(), store, launcher=launcher)

    await browser.open()
    assert browser.state == BrowserState.session_restored

    await browser.login()

    assert browser.state == BrowserState.authenticated
    assert site.logins == 0
    assert launcher.page.visited == [HOME_URL]


async def test_restored_but_invalid_session_logs_in_again(site, launcher):
    site.session_valid = False
    store = InMemorySessionStore([auth_cookie(value="old")])
    browser = BeckBrowser(make_settings(), store, launcher=launcher)

    await browser.login()

    assert browser.state == BrowserState.authenticated
    assert site.logins == 1
    assert find_auth_cookie(await store.load())["value"] == "token-1"


async def test_missing_credentials(launcher, store):
    browser = BeckBrowser(make_settings(beck_password=""), store, launcher=launcher)

    with pytest.raises(ConfigurationError):
        await browser.fetch_page(DOC_URL)

    assert launcher.page.visited == []


async def test_wrong_credentials_report_stuck_page(launcher, store):
    browser = BeckBrowser(make_settings(beck_password="falsch"), store, launcher=launcher)

    with pytest.raises(AuthenticationError) as excinfo:
        await browser.login()

    message = str(excinfo.value)
    assert message.startswith(f"Login failed: Stuck at {IDP_LOGIN_URL} - ")
    assert "Ungültige Anmeldedaten" in message
    assert excinfo.value.url == IDP_LOGIN_URL
    assert browser.state == BrowserState.initialized
    assert await store.load() is None


async def test_missing_auth_cookie_after_redirect(browser, site, launcher, monkeypatch):
    def submit_without_cookie(context, filled):
        return HOME_URL, "<html><body>Startseite</body></html>", None

    monkeypatch.setattr(site, "submit", submit_without_cookie)

    with pytest.raises(AuthenticationError, match="Auth cookie not found after redirect"):
        await browser.login()


async def test_unexpected_login_start_page(browser, site, monkeypatch):
    monkeypatch.setattr(
        site, "route", lambda context, url: ("https://wartung.example.org/", "<html></html>")
    )

    with pytest.raises(AuthenticationError, match="Unexpected login start page"):
        await browser.login()
    assert browser.state == BrowserState.initialized


async def test_already_logged_in_direct_hit(browser, site, store, launcher):
    await browser.open()
    await launcher.handles.context.add_cookies([auth_cookie(value="live")])

    await browser.login()

    assert browser.state == BrowserState.authenticated
    assert site.logins == 0
    assert find_auth_cookie(await store.load())["value"] == "live"


async def test_explicit_login_rechecks_live_session(browser, site, launcher):
    await browser.login()
    await browser.login()

    assert site.logins == 1
    assert launcher.page.visited == [LOGIN_START_URL, HOME_URL]
    assert browser.state == BrowserState.authenticated


async def test_explicit_login_notices_dropped_session(browser, site, store):
    await browser.login()
    site.session_valid = False

    await browser.login()

    assert site.logins == 2
    assert browser.state == BrowserState.authenticated
    assert find_auth_cookie(await store.load())["value"] == "token-2"


async def test_intermediate_redirect_hop(browser, site, launcher):
    site.intermediate_hop = True

    await browser.login()

    assert browser.state == BrowserState.authenticated
    assert browser.get_current_url() == HOME_URL


async def test_relative_urls_are_made_absolute(browser, launcher):
    await browser.fetch_page("/Dokument?vpath=bibdata/ges/bgb/cont/bgb.p823.htm")
    assert launcher.page.visited[-1] == DOC_URL


async def test_content_wait_timeout_is_tolerated(browser, site, launcher):
    site.pages[DOC_URL] = (DOC_URL, "<html><body>ohne Inhalt</body></html>")
    await browser.login()
    launcher.page.content_ready = False

    result = await browser.fetch_page(DOC_URL)

    assert "ohne Inhalt" in result.raw_content


async def test_resolve_url_returns_final_url_only(browser, site):
    lookup = f"{ORIGIN}/Bcid?typ=reference&y=100&g=BGB&p=823"
    site.pages[lookup] = (DOC_URL, DOC_HTML)

    assert await browser.resolve_url(lookup) == DOC_URL


async def test_expired_session_during_fetch_relogs_once(browser, site, store, launcher):
    site.pages[DOC_URL] = (DOC_URL, DOC_HTML)
    await browser.login()
    site.expire_session_once = True

    result = await browser.fetch_page(DOC_URL)

    assert result.raw_content == DOC_HTML
    assert site.logins == 2
    assert browser.state == BrowserState.authenticated
    assert launcher.page.visited.count(DOC_URL) == 2
    assert find_auth_cookie(await store.load())["value"] == "token-2"


async def test_navigations_are_serialized(browser, site, launcher):
    site.render_delay = 0.01
    await browser.login()

    async with anyio.create_task_group() as tg:
        for n in range(4):
            tg.start_soon(browser.fetch_page, f"/Dokument?vpath=doc{n}")

    assert launcher.page.max_in_flight == 1
    assert len([u for u in launcher.page.visited if "vpath=doc" in u]) == 4


async def test_close_is_idempotent_and_resets(browser, launcher, site):
    await browser.login()
    handles = launcher.handles

    await browser.close()
    await browser.close()

    assert handles.browser.closed == 1
    assert handles.playwright.stopped == 1
    assert browser.state == BrowserState.uninitialized
    assert browser.get_current_url() == ""

    # next use relaunches and restores the saved session
    await browser.fetch_page(DOC_URL)
    assert launcher.launches == 2
    assert site.logins == 1


async def test_close_before_launch(browser):
    await browser.close()
    assert browser.state == BrowserState.uninitialized


async def test_open_is_lazy_and_single(store):
    launcher = FakeLauncher(FakeSite())
    browser = BeckBrowser(make_settings(), store, launcher=launcher)

    assert launcher.launches == 0
    await browser.open()
    await browser.open()
    assert launcher.launches == 1
    assert browser.state == BrowserState.initialized

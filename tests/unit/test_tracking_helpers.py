import pytest

from retailhub.services.tracking_service import PIXEL_PNG, device_type, email_client


def test_pixel_is_png():
    assert PIXEL_PNG.startswith(b"\x89PNG")


@pytest.mark.parametrize(
    "ua,expected",
    [
        ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)", "mobile"),
        ("Mozilla/5.0 (Linux; Android 14)", "mobile"),
        ("Mozilla/5.0 (iPad; CPU OS 16_0 like Mac OS X)", "tablet"),
        ("Mozilla/5.0 (Windows NT 10.0; Win64; x64)", "desktop"),
        ("", "desktop"),
    ],
)
def test_device_type(ua, expected):
    assert device_type(ua) == expected


@pytest.mark.parametrize(
    "ua,expected",
    [
        ("Microsoft Outlook 16.0", "Outlook"),
        ("Mozilla/5.0 Thunderbird/115.0", "Thunderbird"),
        ("Mozilla/5.0 (Macintosh) AppleWebKit/605 Mail/3731", "Apple Mail"),
        ("Mozilla/5.0 (Windows NT 5.1) via ggpht.com GoogleImageProxy gmail", "Gmail"),
        ("YahooMailProxy; https://help.yahoo.com", "Yahoo Mail"),
        ("Mozilla/5.0 (Windows NT 10.0) Chrome/120.0 Safari/537.36", "Gmail (Chrome)"),
        ("Mozilla/5.0 (X11; Linux x86_64; rv:120.0) Gecko/20100101 Firefox/120.0", "Thunderbird (Firefox)"),
        ("Mozilla/5.0 (Macintosh) AppleWebKit/605.1.15 Version/17.0 Safari/605.1.15", "Apple Mail (Safari)"),
        ("curl/8.0", "Unknown"),
    ],
)
def test_email_client(ua, expected):
    assert email_client(ua) == expected

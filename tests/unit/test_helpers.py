import base64

import pytest

from walletgate import helpers
from walletgate.exceptions import QRUnavailableError
from walletgate.helpers import QrcodeRenderer, build_deep_link_url, make_qr_data_url


class _RendererStub:
    def __init__(self) -> None:
        self.calls: list[tuple[str, int, int]] = []

    def to_data_url(self, url: str, *, margin: int, scale: int) -> str:
        self.calls.append((url, margin, scale))
        return "data:image/png;base64,stub"


@pytest.mark.parametrize(
    "url",
    ["https://wallet.walletgate.app/v/1", "HTTP://example.com", "openid4vp://authorize?x=1", "eudi-wallet:foo"],
)
def test_build_deep_link_url_returns_valid_urls_unchanged(url):
    assert build_deep_link_url(url) == url


@pytest.mark.parametrize("url", ["", "not a url", "//missing-scheme"])
def test_build_deep_link_url_rejects_invalid(url):
    with pytest.raises(ValueError):
        build_deep_link_url(url)


def test_make_qr_data_url_uses_injected_renderer():
    renderer = _RendererStub()

    assert make_qr_data_url("https://w.example/1", renderer=renderer) == "data:image/png;base64,stub"
    assert renderer.calls == [("https://w.example/1", 1, 4)]


def test_make_qr_data_url_requires_url():
    with pytest.raises(ValueError):
        make_qr_data_url("", renderer=_RendererStub())


def test_missing_qrcode_package_raises_unavailable(monkeypatch):
    monkeypatch.setattr(helpers, "qrcode", None)

    with pytest.raises(QRUnavailableError, match="QR generator not available"):
        make_qr_data_url("https://w.example/1")


def test_qrcode_renderer_produces_png_data_url():
    pytest.importorskip("qrcode")

    data_url = QrcodeRenderer().to_data_url("https://w.example/1")

    prefix = "data:image/png;base64,"
    assert data_url.startswith(prefix)
    assert base64.b64decode(data_url[len(prefix):]).startswith(b"\x89PNG")

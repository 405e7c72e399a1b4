import base64
import io
import re
from typing import Optional, Protocol

from .exceptions import QRUnavailableError

try:
    import qrcode
except ImportError:  # pragma: no cover
    qrcode = None  # type: ignore[assignment]

QR_MARGIN = 1
QR_SCALE = 4

_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)
_URI_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*:", re.IGNORECASE)


class QRRenderer(Protocol):
    def to_data_url(self, url: str, *, margin: int, scale: int) -> str:
        ...


class QrcodeRenderer:
    """Renders PNG data URLs with the optional ``qrcode`` package."""

    def to_data_url(self, url: str, *, margin: int = QR_MARGIN, scale: int = QR_SCALE) -> str:
        if qrcode is None:
            raise QRUnavailableError(
                'QR generator not available. Install the optional dependency "qrcode" '
                "(pip install 'walletgate[qr]') to enable QR generation."
            )
        code = qrcode.QRCode(border=margin, box_size=scale)
        code.add_data(url)
        code.make(fit=True)
        buffer = io.BytesIO()
        code.make_image().save(buffer)
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"


def build_deep_link_url(verification_url: str) -> str:
    if not isinstance(verification_url, str) or not verification_url:
        raise ValueError("verification_url is required")
    if not _HTTP_URL.match(verification_url) and not _URI_SCHEME.match(verification_url):
        raise ValueError("invalid verification_url")
    return verification_url


def make_qr_data_url(url: str, *, renderer: Optional[QRRenderer] = None) -> str:
    if not isinstance(url, str) or not url:
        raise ValueError("url is required")
    active = renderer if renderer is not None else QrcodeRenderer()
    return active.to_data_url(url, margin=QR_MARGIN, scale=QR_SCALE)

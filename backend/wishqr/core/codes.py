"""Deep links and the scannable codes that carry them."""

import base64
import io
import logging

from PIL import Image
import qrcode
from qrcode.constants import ERROR_CORRECT_M

from wishqr.core.config import settings
from wishqr.core.errors import Internal


logger = logging.getLogger("wishqr.codes")

DATA_URL_PREFIX = "data:image/png;base64,"


def wishlist_deep_link(wishlist_id: str) -> str:
    return f"{settings.deep_link_scheme}://view/{wishlist_id}"


def friend_deep_link(user_id: str) -> str:
    return f"{settings.deep_link_scheme}://friend/{user_id}"


def render_qr_data_url(uri: str, size: int | None = None, margin: int | None = None) -> str:
    """Render ``uri`` as a square PNG QR code and return it as a data URL.

    ``margin`` is the quiet zone in modules, ``size`` the output width in pixels.
    """
    width = size or settings.qr_size
    border = settings.qr_margin if margin is None else margin
    try:
        qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=10, border=border)
        qr.add_data(uri)
        qr.make(fit=True)
        image = qr.make_image(fill_color="black", back_color="white").get_image()
        image = image.convert("RGB").resize((width, width), Image.Resampling.NEAREST)
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
    except Exception as exc:
        logger.exception("QR render failed uri=%s", uri)
        raise Internal("Failed to render code") from exc
    return DATA_URL_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")

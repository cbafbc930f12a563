"""QR code rendering for item and category identifiers.

The identifier string is stored as-is and looked up directly; the image is
only a scannable carrier for it and is never decoded server-side.
"""

from io import BytesIO

import qrcode
import qrcode.image.svg
from qrcode.constants import ERROR_CORRECT_M


def _build(value: str) -> qrcode.QRCode:
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=10, border=4)
    qr.add_data(value)
    qr.make(fit=True)
    return qr


def render_qr_png(value: str) -> bytes:
    image = _build(value).make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def render_qr_svg(value: str) -> bytes:
    image = _build(value).make_image(image_factory=qrcode.image.svg.SvgPathImage)
    buffer = BytesIO()
    image.save(buffer)
    return buffer.getvalue()

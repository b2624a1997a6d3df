"""
QR pass renderer adapter - Implements PassRenderer protocol.

Renders a sealed pass string as a PNG QR code with high (H) error
correction, so a pass still scans when printed small or partly smudged.
"""

import base64
from io import BytesIO

import qrcode
from qrcode.constants import ERROR_CORRECT_H


class QrCodePassRenderer:
    """
    Implements PassRenderer protocol via the qrcode library.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, box_size: int = 10, border: int = 1) -> None:
        self._box_size = box_size
        self._border = border

    def render(self, sealed: str) -> str:
        qr = qrcode.QRCode(
            version=None,
            error_correction=ERROR_CORRECT_H,
            box_size=self._box_size,
            border=self._border,
        )
        qr.add_data(sealed)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = BytesIO()
        img.save(buffer, format="PNG")
        return base64.b64encode(buffer.getvalue()).decode("ascii")

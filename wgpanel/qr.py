"""
QR code generation module.
Client configs are shown as QR codes for the WireGuard mobile apps.
"""
import base64
import io

import qrcode


def generate_qr_data_uri(config_content: str) -> str:
    """
    Render `config_content` as a PNG QR code.

    Returns:
        Data URI string (data:image/png;base64,...) ready for an <img> tag
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=4,
    )
    qr.add_data(config_content)
    qr.make(fit=True)

    buffer = io.BytesIO()
    qr.make_image(fill_color="black", back_color="white").save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()

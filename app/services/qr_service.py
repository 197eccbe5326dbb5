"""
QR code generation for event pages
"""

import io
import qrcode

from app.core.config import settings

class QRService:
    """Service for generating QR codes that open an event's photo page"""

    @staticmethod
    def get_event_url(slug: str) -> str:
        return f"{settings.BASE_URL.rstrip('/')}/events/{slug}"

    @staticmethod
    def generate_event_qr(slug: str, format: str = 'PNG') -> bytes:
        """Generate a QR code pointing at the event page"""
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(QRService.get_event_url(slug))
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format=format)
        return buffer.getvalue()

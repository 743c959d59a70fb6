"""
Works out which session token a browser is using.

The token travels in the ``sessionID`` query parameter. Students working
alone get the fixed ``individual`` token; a group gets a random token that
the instructor shares as a link or QR code, so everyone who opens the link
files their controls under the same token.
"""

import io
import string
from enum import Enum
from typing import Optional
from urllib.parse import urlencode

import qrcode
from django.urls import reverse
from django.utils.crypto import get_random_string

from submissions.store import INDIVIDUAL_SESSION

SESSION_PARAM = 'sessionID'
GROUP_TOKEN_LENGTH = 13


class SessionMode(str, Enum):
    INDIVIDUAL = 'individual'
    GROUP = 'group'


def resolve_session_token(params) -> Optional[str]:
    """Token from a QueryDict (or any mapping), or None when there is none."""
    token = (params.get(SESSION_PARAM) or '').strip()
    return token or None


def generate_group_token() -> str:
    return get_random_string(GROUP_TOKEN_LENGTH, allowed_chars=string.ascii_lowercase + string.digits)


def token_for_mode(mode) -> str:
    mode = SessionMode(mode)
    if mode is SessionMode.INDIVIDUAL:
        return INDIVIDUAL_SESSION
    return generate_group_token()


def activity_url(token: str) -> str:
    return reverse('controlgroup:index') + '?' + urlencode({SESSION_PARAM: token})


def share_url(request, token: str) -> str:
    return request.build_absolute_uri(activity_url(token))


def qr_png(url: str) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=2,
    )
    qr.add_data(url)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def qr_url(token: str) -> str:
    return reverse('controlgroup:qr_code') + '?' + urlencode({SESSION_PARAM: token})

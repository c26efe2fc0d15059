"""
Sample messages and fakes shared across the test modules
"""
import asyncio
from types import SimpleNamespace

MULTIPART_SOURCE = """\
From: Alice Example <alice@example.com>
To: Bob <bob@example.com>
Subject: Lunch plans
Date: Mon, 06 Jan 2025 15:04:00 +0000
Message-ID: <abc@example.com>
In-Reply-To: <root@example.com>
MIME-Version: 1.0
Content-Type: multipart/alternative; boundary="XYZ"

This is a multi-part message in MIME format.
--XYZ
Content-Type: text/plain; charset=utf-8
Content-Transfer-Encoding: quoted-printable

Caf=C3=A9 at noon?
--XYZ
Content-Type: text/html; charset=utf-8

<p>Caf&eacute; at noon?</p>
--XYZ--
"""

PLAIN_SOURCE = """\
From: carol@example.com
To: dave@example.com
Subject: Status
Date: Tue, 07 Jan 2025 09:30:00 +0100
Message-ID: <plain@example.com>

All systems normal.
See you tomorrow.
"""


def imap_response(result="OK", lines=None):
    """Build an object shaped like an aioimaplib Response"""
    return SimpleNamespace(result=result, lines=lines or [])


class FakeConnection:
    """Stands in for IMAPConnection/SMTPConnection in service tests"""

    def __init__(self, client):
        self.client = client
        self.lock = asyncio.Lock()
        self.entered = False
        self.closed = False

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.closed = True



"""FTP download handler - declared, not implemented yet."""

from typing import Any, Mapping

from ..errors import CapabilityError
from ..models import DataPoint
from .base import Handler
from .registry import register_handler


@register_handler("ftp_download")
class FtpDownloadHandler(Handler):
    """Download and parse data files over FTP (not implemented)."""

    implemented = False

    def validate(self, config: Mapping[str, Any]):
        raise CapabilityError("ftp_download not implemented yet")

    async def fetch(self, config: Mapping[str, Any]) -> list[DataPoint]:
        raise CapabilityError("ftp_download not implemented yet")

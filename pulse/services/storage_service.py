"""
Report file storage on the local filesystem
"""
from pathlib import Path

from pulse.utils.logger import log


class LocalReportStorage:
    """Stores one PDF per report id under base_dir"""

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)

    def save(self, report_id: str, content: bytes) -> str:
        """Write the PDF and return its location string"""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        path = self.base_dir / f"{report_id}.pdf"
        path.write_bytes(content)
        log.debug(f"Saved report PDF {path} ({len(content)} bytes)")
        return str(path)

    def read(self, location: str) -> bytes:
        return Path(location).read_bytes()

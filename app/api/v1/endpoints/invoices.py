import logging
from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from app.api.deps import Invoices
from app.core.exceptions import NotFound

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Invoices"])


def _remove_invoice(path: Path) -> None:
    try:
        path.unlink()
        logger.info(f"Invoice {path.name} deleted after download")
    except OSError as e:
        logger.error(f"Error deleting invoice {path.name}: {e}")


@router.get("/{filename}")
async def download_invoice(filename: str, invoices: Invoices):
    """Download an invoice once; the file is deleted after it has been sent."""
    path = invoices.path_for(filename)
    if path is None or not path.is_file():
        raise NotFound("Invoice not found")

    return FileResponse(
        path,
        media_type="text/html",
        filename=path.name,
        background=BackgroundTask(_remove_invoice, path),
    )

"""
Delivered Order Archive with Concurrency Control

Delivered orders drop off the delivery board but stay in the order store.
Each one is also appended to an Excel workbook, the restaurant's delivery
history, with a file lock around every read-modify-write since several
Celery workers may archive at once.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from filelock import FileLock, Timeout

from delivery_desk.core.config import get_settings
from delivery_desk.delivery.classification import fulfillment_kind
from delivery_desk.delivery.projection import list_platform
from delivery_desk.schemas import Order
import logging

logger = logging.getLogger(__name__)


def order_archive_row(order: Order, delivered_at: Optional[datetime] = None) -> dict[str, Any]:
    """Flatten an order into one archive row (JSON-serializable, for Celery)."""
    platform = list_platform(order)
    items = "; ".join(
        f"{item.quantity}x {item.menu_item.name}" + (f" ({item.notes})" if item.notes else "")
        for item in order.items
    )
    return {
        "order_id": order.id,
        "display_tag": order.display_tag,
        "order_number": order.order_number,
        "platform": platform.value,
        "fulfillment": fulfillment_kind(platform).value,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "customer_address": order.customer_address,
        "requested_time": order.delivery_time,
        "items": items,
        "total_amount": order.total,
        "created_at": datetime.fromtimestamp(order.created_at / 1000).isoformat(),
        "delivered_at": (delivered_at or datetime.now()).isoformat(),
    }


class DeliveryArchive:
    """Lock-protected Excel archive of delivered orders."""

    COLUMNS = [
        "order_id",
        "display_tag",
        "order_number",
        "platform",
        "fulfillment",
        "customer_name",
        "customer_phone",
        "customer_address",
        "requested_time",
        "items",
        "total_amount",
        "created_at",
        "delivered_at",
        "archived_at",
    ]

    def __init__(
        self,
        data_directory: Optional[str] = None,
        filename: Optional[str] = None,
        lock_timeout: Optional[int] = None,
    ):
        settings = get_settings()
        self.data_dir = Path(data_directory or settings.data_directory)
        self.file_path = self.data_dir / (filename or settings.archive_filename)
        self.lock_path = self.data_dir / f"{self.file_path.name}.lock"
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.archive_lock_timeout

    def _ensure_data_dir(self) -> None:
        """Create data directory if needed."""
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    def _load_or_create_df(self) -> pd.DataFrame:
        """Load existing file or create new DataFrame."""
        if self.file_path.exists():
            try:
                return pd.read_excel(self.file_path, engine="openpyxl")
            except Exception as e:
                logger.warning(f"Error reading {self.file_path}: {e}")
                return pd.DataFrame(columns=self.COLUMNS)
        return pd.DataFrame(columns=self.COLUMNS)

    def archive_order(self, row: dict[str, Any]) -> dict[str, Any]:
        """Append one delivered order to the workbook under the file lock."""
        self._ensure_data_dir()

        order_id = row.get("order_id", "unknown")
        result = {
            "success": False,
            "message": "",
            "order_id": order_id,
            "archived_at": None,
        }

        try:
            lock = FileLock(str(self.lock_path), timeout=self.lock_timeout)

            with lock:
                logger.debug(f"Lock acquired for Order {order_id}")

                df = self._load_or_create_df()

                if "order_id" in df.columns and (df["order_id"].astype(str) == str(order_id)).any():
                    result["success"] = True
                    result["message"] = f"Order {order_id} already archived"
                    return result

                archived_at = datetime.now().isoformat()
                new_row = {column: row.get(column) for column in self.COLUMNS}
                new_row["archived_at"] = archived_at

                df = pd.concat([df, pd.DataFrame([new_row], columns=self.COLUMNS)], ignore_index=True)
                df.to_excel(str(self.file_path), index=False, engine="openpyxl")

                logger.info(f"Order {order_id} archived")

                result["success"] = True
                result["message"] = f"Order {order_id} archived"
                result["archived_at"] = archived_at

            logger.debug(f"Lock released for Order {order_id}")

        except Timeout:
            result["message"] = f"Lock timeout ({self.lock_timeout}s)"
            logger.error(f"Lock timeout for Order {order_id}")

        except Exception as e:
            result["message"] = str(e)
            logger.exception(f"Error archiving Order {order_id}")

        return result

    def get_all_orders(self) -> list[dict[str, Any]]:
        """Get all archived orders."""
        if not self.file_path.exists():
            return []

        try:
            df = pd.read_excel(self.file_path, engine="openpyxl")
            return df.to_dict("records")
        except Exception as e:
            logger.error(f"Error reading archive: {e}")
            return []

    def clear_all(self) -> bool:
        """Delete the archive and its lock file."""
        try:
            for f in [self.file_path, self.lock_path]:
                if f.exists():
                    f.unlink()
            logger.info("Delivery archive cleared")
            return True
        except OSError as e:
            logger.error(f"Error clearing archive: {e}")
            return False

"""
Per-run statistics and alerts.

A RunStats instance lives for exactly one pipeline run. It counts what
happened, collects alerts and prints the end-of-run report.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional

from .models import ProductRecord, RunSummary


class AlertType(Enum):
    """Types of alerts that can be raised during a run."""
    NEW_PRODUCT = "new_product"
    PARSE_FAILURE = "parse_failure"
    DB_ERROR = "db_error"
    HTTP_ERROR = "http_error"
    NOTIFY_ERROR = "notify_error"


class AlertSeverity(Enum):
    """Severity levels for alerts."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


# Map alert types to their severity
ALERT_SEVERITY = {
    AlertType.NEW_PRODUCT: AlertSeverity.INFO,
    AlertType.PARSE_FAILURE: AlertSeverity.WARNING,
    AlertType.DB_ERROR: AlertSeverity.CRITICAL,
    AlertType.HTTP_ERROR: AlertSeverity.CRITICAL,
    AlertType.NOTIFY_ERROR: AlertSeverity.WARNING,
}


@dataclass
class Alert:
    """Individual alert record."""
    alert_type: AlertType
    severity: AlertSeverity
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    message: str = ""


class RunStats:
    """
    Track run statistics and alerts for reporting.
    """

    def __init__(self):
        self.started_at = datetime.now()
        self.completed_at: Optional[datetime] = None

        # Counters
        self.products_discovered = 0
        self.products_unparseable = 0
        self.products_known = 0
        self.products_new = 0
        self.products_indexed = 0
        self.products_failed = 0
        self.notifications_failed = 0

        self.alerts: List[Alert] = []

    def _add(self, alert_type: AlertType, message: str,
             product_id: Optional[str] = None, product_name: Optional[str] = None):
        self.alerts.append(Alert(
            alert_type=alert_type,
            severity=ALERT_SEVERITY[alert_type],
            product_id=product_id,
            product_name=product_name,
            message=message,
        ))

    def record_unparseable(self, position: int, snippet: str):
        """Record a listing element that yielded no id, name or url."""
        self.products_unparseable += 1
        self._add(AlertType.PARSE_FAILURE, f"Unparseable listing element #{position}: {snippet[:50]}")

    def record_new_product(self, record: ProductRecord):
        """Record a product that was written to the store."""
        self.products_indexed += 1
        self._add(AlertType.NEW_PRODUCT, f"New product: {record.name or record.id}",
                  product_id=record.id, product_name=record.name)

    def record_write_failure(self, record: ProductRecord, error_msg: str):
        self.products_failed += 1
        self._add(AlertType.DB_ERROR, f"[DB] {record.id}: {error_msg}",
                  product_id=record.id, product_name=record.name)

    def record_notification_failure(self, record: ProductRecord, error_msg: str):
        self.notifications_failed += 1
        self._add(AlertType.NOTIFY_ERROR, f"[NOTIFY] {record.id}: {error_msg}",
                  product_id=record.id, product_name=record.name)

    def record_fetch_failure(self, url: str, error_msg: str):
        self._add(AlertType.HTTP_ERROR, f"[HTTP] {url}: {error_msg}")

    def get_alert_counts(self) -> Dict[str, int]:
        """Get counts of each alert type."""
        counts: Dict[str, int] = {}
        for alert in self.alerts:
            key = alert.alert_type.value
            counts[key] = counts.get(key, 0) + 1
        return counts

    def get_alerts_by_type(self, alert_type: AlertType) -> List[Alert]:
        """Get all alerts of a specific type."""
        return [a for a in self.alerts if a.alert_type == alert_type]

    def to_summary(self) -> RunSummary:
        """Build the run summary. Call once, after persistence."""
        self.completed_at = self.completed_at or datetime.now()
        return RunSummary(
            message=f"Indexed {self.products_indexed} new product listings",
            numberDiscovered=self.products_discovered,
            numberIndexed=self.products_indexed,
        )

    def print_report(self):
        """Print the run statistics report to console."""
        self.completed_at = self.completed_at or datetime.now()
        duration = self.completed_at - self.started_at
        duration_str = str(timedelta(seconds=int(duration.total_seconds())))

        print("\n" + "=" * 70)
        print("SCRAPE STATISTICS REPORT")
        print("=" * 70)
        print(f"Started:   {self.started_at.strftime('%Y-%m-%d %H:%M:%S')}")
        print(f"Duration:  {duration_str}")
        print()
        print(f"  Products discovered:      {self.products_discovered}")
        print(f"  Unparseable elements:     {self.products_unparseable}")
        print(f"  Already indexed:          {self.products_known}")
        print(f"  New products:             {self.products_new}")
        print(f"  Indexed:                  {self.products_indexed}")
        print(f"  Write failures:           {self.products_failed}")
        print(f"  Notification failures:    {self.notifications_failed}")

        new_products = self.get_alerts_by_type(AlertType.NEW_PRODUCT)
        if new_products:
            print(f"\nNEW PRODUCTS ({len(new_products)})")
            print("-" * 70)
            for alert in new_products[:20]:
                print(f"  {alert.product_id:<30} {alert.product_name or ''}")
            if len(new_products) > 20:
                print(f"  ... and {len(new_products) - 20} more")

        problems = [a for a in self.alerts if a.severity != AlertSeverity.INFO]
        if problems:
            print(f"\nPROBLEMS ({len(problems)})")
            print("-" * 70)
            for alert in problems[:20]:
                print(f"  [{alert.severity.value.upper()}] {alert.message}")

        print("=" * 70, flush=True)

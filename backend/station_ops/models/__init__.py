"""Remote table registry, keyed by table name."""
from station_ops.models.purchase_order import PurchaseOrderRecord
from station_ops.models.log import LogRecord, ActivityLogRecord
from station_ops.models.fleet import (
    SupplierRecord,
    DriverRecord,
    TruckRecord,
    GPSDataRecord,
    AIInsightRecord,
)

TABLE_MODELS = {
    model.__tablename__: model
    for model in (
        PurchaseOrderRecord,
        LogRecord,
        ActivityLogRecord,
        SupplierRecord,
        DriverRecord,
        TruckRecord,
        GPSDataRecord,
        AIInsightRecord,
    )
}

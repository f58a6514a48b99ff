"""
Custom logging formats that contain more detailed kubecfg logs
"""

# First Party
from alog import AlogJsonFormatter


class KubecfgJsonFormatter(AlogJsonFormatter):
    """Custom Log Format that extends AlogJsonFormatter to add kubecfg specific
    fields to the json: the identity of the resource a line is about, the
    reconciliation id and thread information
    """

    _FIELDS_TO_PRINT = AlogJsonFormatter._FIELDS_TO_PRINT + [
        "process",
        "thread",
        "threadName",
        "kind",
        "apiVersion",
        "namespace",
        "resourceName",
        "reconciliationId",
    ]

    def __init__(self, reconciliation_id=None):
        super().__init__()
        self.reconciliation_id = reconciliation_id

    def format(self, record):
        if self.reconciliation_id:
            record.reconciliationId = self.reconciliation_id

        # Log calls can pass extra={"identity": <Identity>}
        if obj_id := getattr(record, "identity", None):
            record.kind = obj_id.kind
            record.apiVersion = obj_id.api_version
            record.namespace = obj_id.namespace
            record.resourceName = obj_id.name

        return super().format(record)

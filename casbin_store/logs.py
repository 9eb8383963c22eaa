import json, logging, time, uuid
from typing import Optional

logger = logging.getLogger("casbin_store.ops")


class LogContext:
    """One operation record: action, entity, payload, result and latency."""

    def __init__(self, action: str):
        self.action = action
        self.request_id = str(uuid.uuid4())
        self.start = time.perf_counter()
        self.payload = None
        self.entity_type = None
        self.entity_id = None

    def set_entity(self, etype: str, eid: str):
        self.entity_type = etype
        self.entity_id = eid

    def set_payload(self, obj): self.payload = obj

    def record(self, result: str = "OK", err: Optional[str] = None) -> dict:
        elapsed_ms = int((time.perf_counter() - self.start) * 1000)
        return {
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "request_id": self.request_id,
            "payload_json": json.dumps(self.payload, ensure_ascii=False) if self.payload is not None else None,
            "result": result,
            "err_msg": err,
            "latency_ms": elapsed_ms,
        }

    def write(self, result: str = "OK", err: Optional[str] = None) -> dict:
        rec = self.record(result, err)
        level = logging.INFO if result == "OK" else logging.WARNING
        logger.log(level, "%(action)s %(result)s %(latency_ms)sms", rec, extra={"op": rec})
        return rec

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from flask import g, has_app_context, has_request_context, request

# Extra record attributes the catalog layers attach via ``extra=``
CATALOG_FIELDS = ("catalog_kind", "catalog_ids")


class RequestContextFilter(logging.Filter):
    """Tag records with the request id and, inside a request, the HTTP route."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = getattr(g, "request_id", None) if has_app_context() else None
        record.http = (
            {
                "method": request.method,
                "path": request.path,
                "endpoint": request.endpoint,
                "client": request.headers.get("X-Forwarded-For", request.remote_addr),
            }
            if has_request_context()
            else None
        )
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line; empty sections are left out."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None)
        if request_id:
            payload["request_id"] = request_id
        http = getattr(record, "http", None)
        if http:
            payload["http"] = http
        catalog = {name[len("catalog_"):]: getattr(record, name) for name in CATALOG_FIELDS if hasattr(record, name)}
        if catalog:
            payload["catalog"] = catalog
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_structured_logging(app) -> None:
    """Route records to stdout as JSON, installing the handler only once."""
    root = logging.getLogger()
    level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    if root.level == logging.NOTSET or root.level > level:
        root.setLevel(level)

    if any(isinstance(handler.formatter, JsonFormatter) for handler in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestContextFilter())
    root.addHandler(handler)


__all__ = ["CATALOG_FIELDS", "RequestContextFilter", "JsonFormatter", "configure_structured_logging"]
